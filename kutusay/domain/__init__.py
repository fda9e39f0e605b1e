"""Core domain models for the kutusay project.

This module provides the value objects shared by the extraction engine,
the comparator and the host-side workflows:
- Token, Row, ExtractedTable: coordinate-based extraction models
- InvoiceItem, BoxCount: invoice lines and physical box tallies
- ComparisonResult, ItemComparison: derived reconciliation output

Usage:
    from kutusay.domain import InvoiceItem, BoxCount
"""

from kutusay.domain.invoice import (
    BoxCount,
    ComparisonResult,
    ExtractedTable,
    InvoiceItem,
    ItemComparison,
    Row,
    Token,
)

__all__ = [
    "BoxCount",
    "ComparisonResult",
    "ExtractedTable",
    "InvoiceItem",
    "ItemComparison",
    "Row",
    "Token",
]
