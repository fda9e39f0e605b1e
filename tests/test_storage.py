import json
from decimal import Decimal

import pytest

from kutusay.domain.invoice import InvoiceItem
from kutusay.runtime.invoice_storage import (
    InvoiceDataError,
    load_box_counts,
    load_invoice_items,
    save_extracted_items,
    save_ocr_json,
)


def test_save_and_reload_extracted_items(kutusay_home) -> None:
    items = [
        InvoiceItem(name="APRANAX 275 MG FTB", quantity=10, unit_price=Decimal("45.90")),
        InvoiceItem(name="AZITRO 500MG TB", quantity=5),
    ]

    path = save_extracted_items(7, items, invoice_number="A12345", supplier_name="Hedef Alliance", mode="coordinate")

    assert path.parent == kutusay_home / "invoices" / "scanned"
    assert path.name.startswith("invoice_7_")
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["invoice_number"] == "A12345"
    assert document["mode"] == "coordinate"

    reloaded = load_invoice_items(path)
    assert [(item.name, item.quantity, item.invoice_id) for item in reloaded] == [
        ("APRANAX 275 MG FTB", 10, 7),
        ("AZITRO 500MG TB", 5, 7),
    ]
    assert reloaded[0].unit_price == Decimal("45.90")
    assert reloaded[1].unit == "box"


def test_saving_twice_in_the_same_second_does_not_overwrite(kutusay_home) -> None:
    first = save_extracted_items(1, [InvoiceItem(name="PAROL", quantity=1)])
    second = save_extracted_items(1, [InvoiceItem(name="PAROL", quantity=2)])

    assert first.exists() and second.exists()
    assert first != second


def test_load_plain_item_list(tmp_path) -> None:
    path = tmp_path / "items.json"
    path.write_text(json.dumps([{"name": "DELIX", "quantity": 3}]), encoding="utf-8")

    (item,) = load_invoice_items(path)

    assert (item.name, item.quantity, item.unit) == ("DELIX", 3, "box")


def test_load_box_counts_document(tmp_path) -> None:
    path = tmp_path / "counts.json"
    path.write_text(
        json.dumps({"box_counts": [{"item_name": "DELIX", "count": 2}, {"count": 4, "note": "unlabelled shelf"}]}),
        encoding="utf-8",
    )

    counts = load_box_counts(path)

    assert [(count.item_name, count.count) for count in counts] == [("DELIX", 2), (None, 4)]
    assert counts[1].note == "unlabelled shelf"


def test_invalid_json(tmp_path) -> None:
    path = tmp_path / "items.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvoiceDataError, match="invalid JSON"):
        load_invoice_items(path)


def test_wrong_shape(tmp_path) -> None:
    path = tmp_path / "counts.json"
    path.write_text(json.dumps({"counts": []}), encoding="utf-8")

    with pytest.raises(InvoiceDataError):
        load_box_counts(path)


def test_missing_required_field(tmp_path) -> None:
    path = tmp_path / "items.json"
    path.write_text(json.dumps([{"name": "DELIX"}]), encoding="utf-8")

    with pytest.raises(InvoiceDataError, match="invalid invoice item"):
        load_invoice_items(path)


def test_save_ocr_json(kutusay_home) -> None:
    path = save_ocr_json({"raw_text": "TOPLAM"}, "photo.jpg")

    assert path == kutusay_home / "invoices" / "ocr_json" / "photo.json"
    assert json.loads(path.read_text(encoding="utf-8")) == {"raw_text": "TOPLAM"}
