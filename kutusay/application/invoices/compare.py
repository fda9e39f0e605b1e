"""Invoice vs. box-count comparison workflow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from kutusay.domain.invoice import ComparisonResult
from kutusay.invoice.comparator import compare_invoice
from kutusay.invoice.report import render_comparison_report
from kutusay.runtime.invoice_storage import InvoiceDataError, load_box_counts, load_invoice_items

ComparisonStatus = Literal["file_not_found", "invalid_input", "compared"]


@dataclass(frozen=True)
class InvoiceComparisonRequest:
    """Inputs for comparing stored invoice items against counted boxes."""

    items_path: Path
    counts_path: Path
    invoice_number: str | None = None
    now: datetime | None = None


@dataclass(frozen=True)
class InvoiceComparisonResult:
    status: ComparisonStatus
    comparison: ComparisonResult | None = None
    report: str | None = None
    error: str | None = None


def run_invoice_comparison(request: InvoiceComparisonRequest) -> InvoiceComparisonResult:
    """Load items and counts, compare them, and render the report."""
    for path in (request.items_path, request.counts_path):
        if not path.exists():
            return InvoiceComparisonResult(status="file_not_found", error=f"File not found: {path}")

    try:
        items = load_invoice_items(request.items_path)
        box_counts = load_box_counts(request.counts_path)
    except InvoiceDataError as exc:
        return InvoiceComparisonResult(status="invalid_input", error=str(exc))

    comparison = compare_invoice(items, box_counts)
    report = render_comparison_report(comparison, invoice_number=request.invoice_number, now=request.now)
    return InvoiceComparisonResult(status="compared", comparison=comparison, report=report)
