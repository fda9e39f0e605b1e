import json
import logging
from pathlib import Path

import pytest

import kutusay.application.invoices.scan as scan_module
from kutusay.application.invoices.scan import InvoiceScanResult
from kutusay.cli.main import main
from kutusay.domain.invoice import InvoiceItem
from kutusay.invoice.table_extractor import InvoiceExtraction


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "compare" in capsys.readouterr().out


def test_compare_matched(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    items = _write(tmp_path / "items.json", [{"name": "DELIX", "quantity": 2}])
    counts = _write(tmp_path / "counts.json", [{"item_name": "DELIX", "count": 2}])

    code = main(["compare", str(items), str(counts), "--invoice-no", "A12345"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Invoice No: A12345" in out
    assert "RESULT: MATCHED" in out


def test_compare_mismatch_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    items = _write(tmp_path / "items.json", [{"name": "DELIX", "quantity": 2}])
    counts = _write(tmp_path / "counts.json", [{"item_name": "DELIX", "count": 1}])

    assert main(["compare", str(items), str(counts)]) == 2
    assert "RESULT: MISMATCH" in capsys.readouterr().out


def test_compare_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["compare", str(tmp_path / "nope.json"), str(tmp_path / "nope2.json")]) == 1
    assert "Error:" in capsys.readouterr().out


def test_scan_missing_image(tmp_path: Path) -> None:
    assert main(["scan", str(tmp_path / "missing.jpg")]) == 1


def test_scan_prints_extraction(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    captured = {}
    extraction = InvoiceExtraction(
        mode="coordinate",
        items=(InvoiceItem(name="APRANAX 275 MG FTB", quantity=10),),
        raw_text="4AD APRANAX 275 MG FTB 10 04/27",
    )

    def fake_scan(request):
        captured["request"] = request
        return InvoiceScanResult(status="extracted", extraction=extraction, mode="coordinate")

    monkeypatch.setattr(scan_module, "run_invoice_scan", fake_scan)

    code = main(["scan", "photo.jpg", "--invoice-id", "4", "--ocr-url", "http://ocr.local:9000"])

    out = capsys.readouterr().out
    assert code == 0
    assert "EXTRACTED INVOICE" in out
    assert "Extraction mode: coordinate" in out
    assert "APRANAX 275 MG FTB" in out
    request = captured["request"]
    assert request.image_path == Path("photo.jpg")
    assert request.invoice_id == 4
    assert request.save is False
    assert request.ocr_service_url == "http://ocr.local:9000"


def test_scan_reports_unavailable_provider(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(
        scan_module,
        "run_invoice_scan",
        lambda request: InvoiceScanResult(status="ocr_unavailable", error="unreachable", mode="coordinate"),
    )

    assert main(["scan", "photo.jpg"]) == 1
    assert "OCR unavailable (coordinate mode)" in capsys.readouterr().out


def test_verbose_flag_enables_debug_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    levels = []
    monkeypatch.setattr("kutusay.cli.main.set_log_level", levels.append)
    items = _write(tmp_path / "items.json", [{"name": "DELIX", "quantity": 2}])
    counts = _write(tmp_path / "counts.json", [{"item_name": "DELIX", "count": 2}])

    assert main(["--verbose", "compare", str(items), str(counts)]) == 0
    assert levels == [logging.DEBUG]
