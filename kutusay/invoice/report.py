"""Human-readable text for comparison results and extracted invoices."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from kutusay.domain.invoice import ComparisonResult

if TYPE_CHECKING:
    from .table_extractor import InvoiceExtraction

REPORT_HEADER = "=== INVOICE CHECK REPORT ==="
REPORT_FOOTER = "=== END OF REPORT ==="


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def render_comparison_report(
    result: ComparisonResult, invoice_number: str | None = None, now: datetime | None = None
) -> str:
    """
    Render the invoice-vs-count report.

    Per-item lines are flagged [OK] or [!]. When there are no comparisons at
    all, the invoice items are listed as extracted instead.
    """
    timestamp = (now or datetime.now()).strftime("%d.%m.%Y %H:%M")
    lines = [REPORT_HEADER, ""]

    if invoice_number is not None:
        lines.append(f"Invoice No: {invoice_number}")
    lines.append(f"Date: {timestamp}")
    lines.append("")

    lines.append("--- SUMMARY ---")
    lines.append(f"Boxes on invoice: {result.invoice_total_boxes}")
    lines.append(f"Boxes counted: {result.counted_total_boxes}")
    lines.append(f"Difference: {_signed(result.difference)}")
    lines.append("")
    lines.append("RESULT: MATCHED" if result.is_matched else "RESULT: MISMATCH")
    lines.append("")

    lines.append("--- DETAILS ---")
    if result.item_comparisons:
        for comparison in result.item_comparisons:
            status = "OK" if comparison.is_matched else "!"
            lines.append(f"[{status}] {comparison.item_name}")
            lines.append(f"    Invoice: {comparison.invoice_quantity}, Counted: {comparison.counted_quantity}")
    else:
        lines.append("Invoice items:")
        for item in result.invoice_items:
            lines.append(f"  - {item.name}: {item.quantity} {item.unit}")

    lines.append("")
    lines.append(REPORT_FOOTER)
    return "\n".join(lines) + "\n"


def format_extracted_invoice(extraction: InvoiceExtraction) -> str:
    """Summarize an extraction for terminal review."""
    lines = [f"Extraction mode: {extraction.mode}"]
    if extraction.invoice_number:
        lines.append(f"Invoice No: {extraction.invoice_number}")
    if extraction.supplier_name:
        lines.append(f"Supplier: {extraction.supplier_name}")
    if extraction.declared_item_count is not None or extraction.declared_total_qty is not None:
        declared_items = "?" if extraction.declared_item_count is None else extraction.declared_item_count
        declared_qty = "?" if extraction.declared_total_qty is None else extraction.declared_total_qty
        lines.append(f"Declared: {declared_items} items, {declared_qty} units")
    for note in extraction.notes:
        lines.append(f"Note: {note}")

    lines.append("")
    if not extraction.items:
        lines.append("No items found.")
    else:
        width = max(len(item.name) for item in extraction.items)
        for item in extraction.items:
            lines.append(f"  {item.name.ljust(width)}  {item.quantity:>4} {item.unit}")
        lines.append(f"  {'TOTAL'.ljust(width)}  {extraction.total_quantity:>4}")
    return "\n".join(lines)
