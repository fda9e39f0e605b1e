"""Composable invoice parser components."""

from .fields_parser import extract_declared_totals, extract_invoice_number, extract_supplier_name
from .quantities import align_scanned_quantities, reconcile_quantities
from .row_fields import analyze_row, extract_quantity
from .text_fallback import (
    extract_items_from_text,
    find_known_drug_names,
    find_location_anchored_names,
    find_unit_suffixed_items,
    scan_quantity_lines,
)
from .validation import ValidationReport, require_valid_table, validate_table

__all__ = [
    "ValidationReport",
    "align_scanned_quantities",
    "analyze_row",
    "extract_declared_totals",
    "extract_invoice_number",
    "extract_items_from_text",
    "extract_quantity",
    "extract_supplier_name",
    "find_known_drug_names",
    "find_location_anchored_names",
    "find_unit_suffixed_items",
    "reconcile_quantities",
    "require_valid_table",
    "scan_quantity_lines",
    "validate_table",
]
