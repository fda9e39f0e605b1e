"""Invoice scan workflow orchestration."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from kutusay.invoice.errors import (
    ExtractionEmpty,
    ImageLoadError,
    OcrProviderError,
    ProviderNetworkError,
    ProviderUnavailable,
)
from kutusay.invoice.table_extractor import InvoiceExtraction, OcrProvider, extract_invoice
from kutusay.runtime import get_logger, load_invoice_vocabulary, load_ocr_settings
from kutusay.runtime.invoice_storage import save_extracted_items, save_ocr_json
from kutusay.runtime.ocr_providers import select_ocr_provider

if TYPE_CHECKING:
    from kutusay.invoice.vocabulary import InvoiceVocabulary

logger = get_logger(__name__)

ScanStatus = Literal[
    "file_not_found",
    "image_error",
    "ocr_unavailable",
    "ocr_failed",
    "empty",
    "extracted",
    "saved",
]


@dataclass(frozen=True)
class InvoiceScanRequest:
    """Inputs for running the invoice scan workflow."""

    image_path: Path
    invoice_id: int = 0
    save: bool = False
    ocr_service_url: str | None = None
    provider: OcrProvider | None = None
    vocabulary: InvoiceVocabulary | None = None


@dataclass(frozen=True)
class InvoiceScanResult:
    """Outcome from the invoice scan workflow."""

    status: ScanStatus
    extraction: InvoiceExtraction | None = None
    saved_path: Path | None = None
    error: str | None = None
    mode: str | None = None


async def run_invoice_extraction(
    image_bytes: bytes,
    *,
    provider: OcrProvider,
    vocabulary: InvoiceVocabulary,
) -> InvoiceScanResult:
    """Extract items from image bytes and map every failure onto a scan status."""
    try:
        extraction = await extract_invoice(image_bytes, provider, vocabulary)
    except ImageLoadError as exc:
        return InvoiceScanResult(status="image_error", error=str(exc))
    except (ProviderUnavailable, ProviderNetworkError) as exc:
        return InvoiceScanResult(status="ocr_unavailable", error=str(exc), mode=exc.mode)
    except OcrProviderError as exc:
        return InvoiceScanResult(status="ocr_failed", error=str(exc), mode=exc.mode)
    except ExtractionEmpty as exc:
        return InvoiceScanResult(status="empty", error=str(exc), mode="fallback")

    return InvoiceScanResult(status="extracted", extraction=extraction, mode=extraction.mode)


async def run_invoice_scan_async(request: InvoiceScanRequest) -> InvoiceScanResult:
    """Run scan flow: read image -> OCR -> extract -> optional save for review."""
    if not request.image_path.exists():
        return InvoiceScanResult(
            status="file_not_found",
            error=f"Invoice image not found: {request.image_path}",
        )

    provider = request.provider or select_ocr_provider(load_ocr_settings(request.ocr_service_url))
    vocabulary = request.vocabulary or load_invoice_vocabulary()

    result = await run_invoice_extraction(
        request.image_path.read_bytes(),
        provider=provider,
        vocabulary=vocabulary,
    )
    if result.status != "extracted" or not request.save:
        return result

    assert result.extraction is not None
    extraction = result.extraction
    save_ocr_json({"mode": extraction.mode, "raw_text": extraction.raw_text}, request.image_path.name)
    saved_path = save_extracted_items(
        request.invoice_id,
        list(extraction.items),
        invoice_number=extraction.invoice_number,
        supplier_name=extraction.supplier_name,
        mode=extraction.mode,
    )
    return InvoiceScanResult(
        status="saved",
        extraction=extraction,
        saved_path=saved_path,
        mode=extraction.mode,
    )


def run_invoice_scan(request: InvoiceScanRequest) -> InvoiceScanResult:
    """Synchronous entry point for the CLI."""
    return asyncio.run(run_invoice_scan_async(request))
