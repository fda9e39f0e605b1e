"""Invoice command handlers used by the unified CLI."""

import argparse
from pathlib import Path

from kutusay.runtime import get_logger

logger = get_logger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the FastAPI server for receiving invoice uploads."""
    import uvicorn

    from kutusay.runtime import invoice_server as server

    print(f"Starting invoice server on {args.host}:{args.port}")
    print(f"Endpoints: http://{args.host}:{args.port}/invoices | /compare | /health")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    """Extract line items from an invoice image and optionally save them for review."""
    from kutusay.application.invoices.scan import InvoiceScanRequest, run_invoice_scan
    from kutusay.invoice.report import format_extracted_invoice

    result = run_invoice_scan(
        InvoiceScanRequest(
            image_path=Path(args.image),
            invoice_id=args.invoice_id,
            save=args.save,
            ocr_service_url=args.ocr_url,
        )
    )

    if result.status == "file_not_found":
        logger.error("%s", result.error)
        print(f"Error: {result.error}")
        return 1

    if result.status == "image_error":
        print(f"Could not read image: {result.error}")
        return 1

    if result.status == "ocr_unavailable":
        print(f"OCR unavailable ({result.mode} mode): {result.error}")
        print("Set KUTUSAY_CLOUD_VISION_API_KEY or make sure the OCR service is running.")
        return 1

    if result.status == "ocr_failed":
        print(f"OCR failed ({result.mode} mode): {result.error}")
        return 1

    if result.status == "empty":
        print("No text recognized in the image.")
        return 1

    extraction = result.extraction
    if extraction is None:
        print("Scan failed: missing extraction output.")
        return 1

    print("\n" + "=" * 60)
    print("EXTRACTED INVOICE")
    print("=" * 60)
    print(format_extracted_invoice(extraction))
    print("=" * 60)

    if result.status == "saved":
        print(f"\nSaved for review: {result.saved_path}")
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare reviewed invoice items against counted boxes and print the report."""
    from kutusay.application.invoices.compare import InvoiceComparisonRequest, run_invoice_comparison

    result = run_invoice_comparison(
        InvoiceComparisonRequest(
            items_path=Path(args.items),
            counts_path=Path(args.counts),
            invoice_number=args.invoice_no,
        )
    )

    if result.status != "compared":
        logger.error("%s", result.error)
        print(f"Error: {result.error}")
        return 1

    assert result.report is not None and result.comparison is not None
    print(result.report, end="")
    return 0 if result.comparison.is_matched else 2
