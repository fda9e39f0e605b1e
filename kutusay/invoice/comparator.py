"""Match invoice items against physically counted boxes."""

from collections.abc import Sequence

from kutusay.domain.invoice import BoxCount, ComparisonResult, InvoiceItem, ItemComparison
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)


def _normalize(name: str) -> str:
    return name.casefold()


def _counted_by_name(box_counts: Sequence[BoxCount]) -> dict[str, int]:
    """Sum counts per case-folded name. Unlabelled counts belong to no item."""
    counted: dict[str, int] = {}
    for box in box_counts:
        if box.item_name is None:
            continue
        key = _normalize(box.item_name)
        counted[key] = counted.get(key, 0) + box.count
    return counted


def compare_invoice(items: Sequence[InvoiceItem], box_counts: Sequence[BoxCount]) -> ComparisonResult:
    """
    Compare invoice quantities with counted boxes.

    Names match exactly after case folding; there is no fuzzy matching, so
    "aprax" never matches "APRANAX". Counted names missing from the invoice
    get a comparison of their own with an invoice quantity of 0. Unlabelled
    counts only contribute to the counted total. A name listed on several
    invoice lines shares its counted boxes between them in invoice order.
    """
    counted = _counted_by_name(box_counts)
    remaining = dict(counted)
    last_line = {_normalize(item.name): i for i, item in enumerate(items)}

    comparisons: list[ItemComparison] = []
    for i, item in enumerate(items):
        key = _normalize(item.name)
        available = remaining.get(key, 0)
        # repeated invoice lines draw from one pool; the last line takes the rest
        counted_quantity = available if last_line[key] == i else min(item.quantity, available)
        remaining[key] = available - counted_quantity
        difference = counted_quantity - item.quantity
        comparisons.append(
            ItemComparison(
                item_name=item.name,
                invoice_quantity=item.quantity,
                counted_quantity=counted_quantity,
                is_matched=difference == 0,
                difference=difference,
            )
        )

    for name, counted_quantity in counted.items():
        if name in last_line:
            continue
        comparisons.append(
            ItemComparison(
                item_name=name,
                invoice_quantity=0,
                counted_quantity=counted_quantity,
                is_matched=False,
                difference=counted_quantity,
            )
        )

    invoice_total = sum(item.quantity for item in items)
    counted_total = sum(box.count for box in box_counts)
    difference = counted_total - invoice_total
    logger.debug(
        "Compared %d items with %d counts: invoice=%d counted=%d",
        len(items),
        len(box_counts),
        invoice_total,
        counted_total,
    )

    return ComparisonResult(
        invoice_items=tuple(items),
        box_counts=tuple(box_counts),
        invoice_total_boxes=invoice_total,
        counted_total_boxes=counted_total,
        is_matched=difference == 0,
        difference=difference,
        item_comparisons=tuple(comparisons),
    )
