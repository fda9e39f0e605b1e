"""Data models for invoice extraction and box-count reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any

DEFAULT_UNIT = "box"


@dataclass(frozen=True)
class Token:
    """A single OCR word with its bounding box in image pixels."""

    text: str
    min_x: float
    min_y: float
    max_x: float
    max_y: float
    is_handwritten: bool = False
    confidence: float = 1.0

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def with_handwritten(self, is_handwritten: bool) -> Token:
        return replace(self, is_handwritten=is_handwritten)


@dataclass(frozen=True)
class Row:
    """One grouped table row.

    Tokens are ordered left-to-right. The optional fields stay unset until the
    row analyzer produces an analysed copy.
    """

    index: int
    center_y: float
    tokens: tuple[Token, ...]
    location_code: str | None = None
    item_name: str | None = None
    quantity: int | None = None
    expiry_hint: str | None = None
    is_printed: bool = True

    @property
    def text(self) -> str:
        return " ".join(token.text for token in self.tokens)

    @property
    def printed_tokens(self) -> tuple[Token, ...]:
        return tuple(token for token in self.tokens if not token.is_handwritten)

    @property
    def handwritten_tokens(self) -> tuple[Token, ...]:
        return tuple(token for token in self.tokens if token.is_handwritten)

    @property
    def is_medicine_row(self) -> bool:
        return self.location_code is not None and self.item_name is not None


@dataclass(frozen=True)
class ExtractedTable:
    """Result of one coordinate-based extraction attempt."""

    rows: tuple[Row, ...]
    declared_item_count: int | None = None
    declared_total_qty: int | None = None
    invoice_number: str | None = None
    supplier_name: str | None = None
    all_tokens: tuple[Token, ...] = ()

    @property
    def medicine_rows(self) -> tuple[Row, ...]:
        return tuple(row for row in self.rows if row.is_medicine_row)


def _optional_decimal(raw: Any) -> Decimal | None:
    if raw is None or raw == "":
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None


@dataclass
class InvoiceItem:
    """A line item on a supplier invoice.

    Mutable so a reviewer can correct name/quantity before it is persisted.
    """

    name: str
    quantity: int
    id: int = 0
    invoice_id: int = 0
    unit: str = DEFAULT_UNIT
    unit_price: Decimal | None = None
    total_price: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "total_price": str(self.total_price) if self.total_price is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InvoiceItem:
        return cls(
            id=int(data.get("id", 0)),
            invoice_id=int(data.get("invoice_id", 0)),
            name=str(data["name"]),
            quantity=int(data["quantity"]),
            unit=str(data.get("unit") or DEFAULT_UNIT),
            unit_price=_optional_decimal(data.get("unit_price")),
            total_price=_optional_decimal(data.get("total_price")),
        )


@dataclass(frozen=True)
class BoxCount:
    """A physically counted batch of boxes, optionally labelled with an item name."""

    count: int
    id: int = 0
    invoice_id: int = 0
    item_name: str | None = None
    image_uri: str | None = None
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "item_name": self.item_name,
            "count": self.count,
            "image_uri": self.image_uri,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BoxCount:
        item_name = data.get("item_name")
        return cls(
            id=int(data.get("id", 0)),
            invoice_id=int(data.get("invoice_id", 0)),
            item_name=str(item_name) if item_name is not None else None,
            count=int(data["count"]),
            image_uri=data.get("image_uri"),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class ItemComparison:
    """Invoice vs counted quantity for one item name."""

    item_name: str
    invoice_quantity: int
    counted_quantity: int
    is_matched: bool
    difference: int  # counted - invoice


@dataclass(frozen=True)
class ComparisonResult:
    """Derived invoice-vs-count comparison. Recomputed on demand, never stored."""

    invoice_items: tuple[InvoiceItem, ...]
    box_counts: tuple[BoxCount, ...]
    invoice_total_boxes: int
    counted_total_boxes: int
    is_matched: bool
    difference: int  # counted - invoice
    item_comparisons: tuple[ItemComparison, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice_total_boxes": self.invoice_total_boxes,
            "counted_total_boxes": self.counted_total_boxes,
            "is_matched": self.is_matched,
            "difference": self.difference,
            "item_comparisons": [
                {
                    "item_name": comparison.item_name,
                    "invoice_quantity": comparison.invoice_quantity,
                    "counted_quantity": comparison.counted_quantity,
                    "is_matched": comparison.is_matched,
                    "difference": comparison.difference,
                }
                for comparison in self.item_comparisons
            ],
        }
