"""FastAPI server for receiving invoice images and box counts from the phone."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kutusay.application.invoices.scan import run_invoice_extraction
from kutusay.domain.invoice import BoxCount, InvoiceItem
from kutusay.invoice.comparator import compare_invoice
from kutusay.invoice.report import render_comparison_report
from kutusay.invoice.table_extractor import InvoiceExtraction, OcrProvider
from kutusay.invoice.vocabulary import InvoiceVocabulary
from kutusay.runtime import get_logger, get_paths, load_invoice_vocabulary, load_ocr_settings
from kutusay.runtime.invoice_storage import save_extracted_items
from kutusay.runtime.ocr_providers import select_ocr_provider

logger = get_logger(__name__)

# Failure statuses from the scan workflow and the HTTP status they map to
_STATUS_CODES = {
    "image_error": 400,
    "empty": 422,
    "ocr_failed": 502,
    "ocr_unavailable": 503,
}

_provider: OcrProvider | None = None


def get_ocr_provider() -> OcrProvider:
    """Process-wide provider, so a demoted failover primary stays demoted."""
    global _provider
    if _provider is None:
        _provider = select_ocr_provider(load_ocr_settings())
    return _provider


def get_vocabulary() -> InvoiceVocabulary:
    return load_invoice_vocabulary()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create invoice directories on startup."""
    get_paths().ensure_invoice_directories()
    yield


app = FastAPI(title="Invoice Scanner", lifespan=lifespan)


def _extraction_payload(extraction: InvoiceExtraction) -> dict[str, Any]:
    return {
        "mode": extraction.mode,
        "invoice_number": extraction.invoice_number,
        "supplier_name": extraction.supplier_name,
        "declared_item_count": extraction.declared_item_count,
        "declared_total_qty": extraction.declared_total_qty,
        "total_quantity": extraction.total_quantity,
        "notes": list(extraction.notes),
        "items": [item.to_dict() for item in extraction.items],
    }


def _form_int(value: Any, default: int = 0) -> int:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return default


@app.post("/invoices")
async def upload_invoice(request: Request) -> JSONResponse:
    """Receive an invoice image, extract its line items and optionally save them for review."""
    form = await request.form()

    file = None
    for key, value in form.items():
        logger.debug("Form field: key=%r, type=%s", key, type(value))
        if hasattr(value, "read"):
            file = value
            break

    if not file:
        return JSONResponse({"status": "error", "message": "No file found in request"}, status_code=400)

    contents = await file.read()
    file_filename = getattr(file, "filename", None) or "invoice.jpg"
    logger.info("Received %s (%d bytes)", file_filename, len(contents))

    result = await run_invoice_extraction(contents, provider=get_ocr_provider(), vocabulary=get_vocabulary())
    if result.status != "extracted" or result.extraction is None:
        logger.error("Invoice extraction failed (%s): %s", result.status, result.error)
        return JSONResponse(
            {"status": "error", "reason": result.status, "mode": result.mode, "message": result.error},
            status_code=_STATUS_CODES.get(result.status, 500),
        )

    extraction = result.extraction
    payload: dict[str, Any] = {"status": "success", **_extraction_payload(extraction)}

    if str(form.get("save", "")).lower() in {"1", "true", "yes", "on"}:
        invoice_id = _form_int(form.get("invoice_id"))
        saved_path = save_extracted_items(
            invoice_id,
            [InvoiceItem.from_dict(item.to_dict()) for item in extraction.items],
            invoice_number=extraction.invoice_number,
            supplier_name=extraction.supplier_name,
            mode=extraction.mode,
        )
        payload["saved_filename"] = Path(saved_path).name

    return JSONResponse(payload)


@app.post("/compare")
async def compare(request: Request) -> JSONResponse:
    """Compare posted invoice items against posted box counts."""
    try:
        body = await request.json()
        items = [InvoiceItem.from_dict(record) for record in body.get("items", [])]
        box_counts = [BoxCount.from_dict(record) for record in body.get("box_counts", [])]
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        return JSONResponse({"status": "error", "message": f"Invalid request body: {exc}"}, status_code=400)

    result = compare_invoice(items, box_counts)
    report = render_comparison_report(result, invoice_number=body.get("invoice_number"), now=datetime.now())
    return JSONResponse({"status": "success", **result.to_dict(), "report": report})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
