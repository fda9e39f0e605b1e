"""JSON storage for extracted invoice items and box counts.

Directory structure:
    invoices/
    ├── scanned/    - Extracted items awaiting manual review
    └── ocr_json/   - Raw OCR transcripts
"""

import json
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from kutusay.domain.invoice import BoxCount, InvoiceItem
from kutusay.runtime.logging import get_logger
from kutusay.runtime.paths import get_paths

logger = get_logger(__name__)


class InvoiceDataError(ValueError):
    """Raised when an items/counts file does not have the expected shape."""


def _unique_path(directory: Path, stem: str, suffix: str = ".json") -> Path:
    filepath = directory / f"{stem}{suffix}"
    counter = 1
    while filepath.exists():
        filepath = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return filepath


def save_extracted_items(
    invoice_id: int,
    items: Sequence[InvoiceItem],
    *,
    invoice_number: str | None = None,
    supplier_name: str | None = None,
    mode: str | None = None,
) -> Path:
    """
    Save extracted items to invoices/scanned/ for review.

    Items are stamped with `invoice_id` before writing.

    Returns:
        Path to the saved file
    """
    paths = get_paths()
    paths.ensure_invoice_directories()

    for item in items:
        item.invoice_id = invoice_id

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = _unique_path(paths.invoices_scanned, f"invoice_{invoice_id}_{timestamp}")
    document = {
        "invoice_id": invoice_id,
        "invoice_number": invoice_number,
        "supplier_name": supplier_name,
        "mode": mode,
        "items": [item.to_dict() for item in items],
    }
    filepath.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Saved %d extracted items to %s", len(items), filepath)
    return filepath


def _read_records(path: Path, key: str) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvoiceDataError(f"{path.name}: invalid JSON ({exc})") from exc

    records = data.get(key) if isinstance(data, dict) else data
    if not isinstance(records, list) or not all(isinstance(record, dict) for record in records):
        raise InvoiceDataError(f"{path.name}: expected a list of objects or {{'{key}': [...]}}")
    return records


def load_invoice_items(path: Path) -> list[InvoiceItem]:
    """Load invoice items from a JSON list or a saved extraction document."""
    records = _read_records(path, "items")
    try:
        return [InvoiceItem.from_dict(record) for record in records]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvoiceDataError(f"{path.name}: invalid invoice item ({exc})") from exc


def load_box_counts(path: Path) -> list[BoxCount]:
    """Load box counts from a JSON list or a {"box_counts": [...]} document."""
    records = _read_records(path, "box_counts")
    try:
        return [BoxCount.from_dict(record) for record in records]
    except (KeyError, TypeError, ValueError) as exc:
        raise InvoiceDataError(f"{path.name}: invalid box count ({exc})") from exc


def save_ocr_json(payload: dict[str, Any], name: str) -> Path:
    """Save an OCR transcript/result for debugging."""
    paths = get_paths()
    paths.invoices_ocr_json.mkdir(parents=True, exist_ok=True)
    ocr_json_path = paths.invoices_ocr_json / f"{Path(name).stem}.json"
    ocr_json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("OCR JSON saved to: %s", ocr_json_path)
    return ocr_json_path
