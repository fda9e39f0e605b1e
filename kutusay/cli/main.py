#!/usr/bin/env python3

import argparse
import logging
from collections.abc import Sequence

from kutusay.runtime.logging import set_log_level
from kutusay.runtime.settings import DEFAULT_OCR_SERVICE_URL


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Pharmacy invoice extraction and box-count reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  scan <image>               Extract line items from an invoice image
  compare <items> <counts>   Compare invoice items against counted boxes
  serve [--host] [--port]    Start invoice upload server

Notes:
  invoices/scanned/  = extracted items awaiting review
  compare exits 2 when the counts do not match the invoice
""",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-row extraction details")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # scan command
    scan_parser = subparsers.add_parser("scan", help="Extract line items from an invoice image")
    scan_parser.add_argument("image", help="Path to invoice image")
    scan_parser.add_argument("--invoice-id", type=int, default=0, help="Invoice id to stamp on saved items")
    scan_parser.add_argument("--save", action="store_true", help="Save extracted items to invoices/scanned/")
    scan_parser.add_argument(
        "--ocr-url",
        default=None,
        help=f"Local OCR service URL (default: $KUTUSAY_OCR_SERVICE_URL or {DEFAULT_OCR_SERVICE_URL})",
    )

    # compare command
    compare_parser = subparsers.add_parser("compare", help="Compare invoice items against counted boxes")
    compare_parser.add_argument("items", help="JSON file with invoice items (list or saved scan)")
    compare_parser.add_argument("counts", help="JSON file with box counts")
    compare_parser.add_argument("--invoice-no", default=None, help="Invoice number shown in the report")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start invoice upload server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.verbose:
        set_log_level(logging.DEBUG)

    if args.command == "scan":
        from kutusay.cli.invoice import cmd_scan

        return cmd_scan(args)
    elif args.command == "compare":
        from kutusay.cli.invoice import cmd_compare

        return cmd_compare(args)
    elif args.command == "serve":
        from kutusay.cli.invoice import cmd_serve

        return cmd_serve(args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
