"""Invoice workflows."""

from kutusay.application.invoices.compare import (
    InvoiceComparisonRequest,
    InvoiceComparisonResult,
    run_invoice_comparison,
)
from kutusay.application.invoices.scan import (
    InvoiceScanRequest,
    InvoiceScanResult,
    run_invoice_extraction,
    run_invoice_scan,
    run_invoice_scan_async,
)

__all__ = [
    "InvoiceComparisonRequest",
    "InvoiceComparisonResult",
    "run_invoice_comparison",
    "InvoiceScanRequest",
    "InvoiceScanResult",
    "run_invoice_extraction",
    "run_invoice_scan",
    "run_invoice_scan_async",
]
