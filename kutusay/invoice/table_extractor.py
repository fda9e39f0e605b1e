"""Two-tier invoice extraction: coordinate table first, textual fallback second."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

from PIL import Image

from kutusay.domain.invoice import ExtractedTable, InvoiceItem, Token
from kutusay.invoice.color import classify_token_colors
from kutusay.invoice.errors import ExtractionEmpty, OcrProviderError, ValidationRejected
from kutusay.invoice.layout import group_tokens_into_rows, rows_to_text
from kutusay.invoice.parser import (
    ValidationReport,
    align_scanned_quantities,
    analyze_row,
    extract_declared_totals,
    extract_invoice_number,
    extract_items_from_text,
    extract_supplier_name,
    reconcile_quantities,
    require_valid_table,
    scan_quantity_lines,
)
from kutusay.invoice.vocabulary import InvoiceVocabulary
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

ExtractionMode = Literal["coordinate", "fallback"]


@dataclass(frozen=True)
class LayoutResult:
    """Tokens with coordinates, the provider's raw transcript, and the image the coordinates refer to.

    The receiver owns `image` and must close it.
    """

    tokens: tuple[Token, ...]
    raw_text: str
    image: Image.Image | None = None


class OcrProvider(Protocol):
    """An OCR backend. Layout-less providers only implement plain text."""

    @property
    def supports_layout(self) -> bool: ...

    async def recognize_plain_text(self, image_bytes: bytes) -> str: ...

    async def recognize_with_layout(self, image_bytes: bytes) -> LayoutResult: ...


@dataclass(frozen=True)
class InvoiceExtraction:
    mode: ExtractionMode
    items: tuple[InvoiceItem, ...]
    raw_text: str
    table: ExtractedTable | None = None
    declared_item_count: int | None = None
    declared_total_qty: int | None = None
    invoice_number: str | None = None
    supplier_name: str | None = None
    validation: ValidationReport | None = None
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


def build_table(
    tokens: Sequence[Token],
    raw_text: str,
    vocabulary: InvoiceVocabulary,
    image: Image.Image | None = None,
) -> ExtractedTable:
    """Run the coordinate pipeline: color classification, row grouping, field analysis, invoice fields."""
    classified = classify_token_colors(tokens, image)
    rows = [analyze_row(row, vocabulary) for row in group_tokens_into_rows(classified)]
    text = raw_text if raw_text and raw_text.strip() else rows_to_text(rows)
    declared_items, declared_qty = extract_declared_totals(text, vocabulary)

    return ExtractedTable(
        rows=tuple(rows),
        declared_item_count=declared_items,
        declared_total_qty=declared_qty,
        invoice_number=extract_invoice_number(text),
        supplier_name=extract_supplier_name([row.text for row in rows], text, vocabulary),
        all_tokens=tuple(classified),
    )


def items_from_table(table: ExtractedTable, raw_text: str) -> list[InvoiceItem]:
    """
    Turn medicine rows into invoice items.

    Quantity priority: the row's own quantity, then a positional scan of the
    transcript, then a share of the declared total.
    """
    rows = table.medicine_rows
    per_row = [row.quantity for row in rows]
    aligned = align_scanned_quantities(per_row, scan_quantity_lines(raw_text or ""))
    quantities = reconcile_quantities(len(rows), aligned, table.declared_total_qty)
    return [InvoiceItem(name=row.item_name or "", quantity=quantity) for row, quantity in zip(rows, quantities)]


async def _coordinate_attempt(
    image_bytes: bytes, provider: OcrProvider, vocabulary: InvoiceVocabulary
) -> tuple[InvoiceExtraction | None, str, list[str]]:
    """Try the coordinate tier. Returns (extraction or None, raw transcript, notes)."""
    layout = await provider.recognize_with_layout(image_bytes)
    notes: list[str] = []
    try:
        if not layout.tokens:
            logger.info("Provider returned no tokens; using textual fallback")
            notes.append("no layout tokens")
            return None, layout.raw_text, notes

        table = build_table(layout.tokens, layout.raw_text, vocabulary, layout.image)
    finally:
        if layout.image is not None:
            layout.image.close()

    raw_text = layout.raw_text if layout.raw_text.strip() else rows_to_text(table.rows)
    try:
        report = require_valid_table(table, vocabulary)
    except ValidationRejected as exc:
        logger.info("Coordinate extraction rejected (%s); using textual fallback", exc)
        notes.extend(exc.reasons)
        return None, raw_text, notes

    extraction = InvoiceExtraction(
        mode="coordinate",
        items=tuple(items_from_table(table, raw_text)),
        raw_text=raw_text,
        table=table,
        declared_item_count=table.declared_item_count,
        declared_total_qty=table.declared_total_qty,
        invoice_number=table.invoice_number,
        supplier_name=table.supplier_name,
        validation=report,
    )
    return extraction, raw_text, notes


def _textual_extraction(raw_text: str, vocabulary: InvoiceVocabulary, notes: list[str]) -> InvoiceExtraction:
    declared_items, declared_qty = extract_declared_totals(raw_text, vocabulary)
    lines = [line.strip() for line in raw_text.splitlines() if line.strip()]
    items = extract_items_from_text(raw_text, vocabulary, declared_qty)
    return InvoiceExtraction(
        mode="fallback",
        items=tuple(items),
        raw_text=raw_text,
        declared_item_count=declared_items,
        declared_total_qty=declared_qty,
        invoice_number=extract_invoice_number(raw_text),
        supplier_name=extract_supplier_name(lines, raw_text, vocabulary),
        notes=tuple(notes),
    )


async def extract_invoice(
    image_bytes: bytes, provider: OcrProvider, vocabulary: InvoiceVocabulary
) -> InvoiceExtraction:
    """
    Extract invoice items from an image.

    The coordinate tier runs only when the provider supports layout and
    returns tokens. Zero tokens or a rejected table fall back to the textual
    tier over the layout transcript, or a freshly fetched plain transcript
    when that one is blank. Cancellation propagates and nothing partial is
    returned.

    Raises:
        ExtractionEmpty: If no text was recognized at all.
        OcrProviderError: Provider failure, with `mode` set to the tier that was running.
    """
    mode: ExtractionMode = "coordinate" if provider.supports_layout else "fallback"
    raw_text = ""
    notes: list[str] = []

    try:
        if provider.supports_layout:
            extraction, raw_text, notes = await _coordinate_attempt(image_bytes, provider, vocabulary)
            if extraction is not None:
                logger.info("Coordinate extraction accepted: %d items", len(extraction.items))
                return extraction

        mode = "fallback"
        if not raw_text or not raw_text.strip():
            raw_text = await provider.recognize_plain_text(image_bytes)
    except OcrProviderError as exc:
        exc.mode = mode
        logger.error("OCR provider failed during %s extraction: %s", mode, exc)
        raise

    if not raw_text or not raw_text.strip():
        raise ExtractionEmpty("No text recognized in image")

    extraction = _textual_extraction(raw_text, vocabulary, notes)
    logger.info("Textual extraction: %d items", len(extraction.items))
    return extraction
