"""Quantity reconciliation against the declared invoice total."""

from collections.abc import Sequence

from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUANTITY = 1


def reconcile_quantities(
    item_count: int, found: Sequence[int | None], declared_total: int | None = None
) -> list[int]:
    """
    Assign a quantity to every item.

    Found quantities are assigned positionally; `found` may be shorter than
    the item list and may hold None for items without one. Unassigned items
    share what the declared total leaves over: each gets the integer average
    and the first `remainder` of them one extra unit. Every assigned quantity
    is at least 1. Without a declared total unassigned items get 1.
    """
    if item_count <= 0:
        return []

    assigned: list[int | None] = [found[i] if i < len(found) else None for i in range(item_count)]
    unassigned = [i for i, quantity in enumerate(assigned) if quantity is None]

    if declared_total is None or not unassigned:
        return [max(DEFAULT_QUANTITY, q) if q is not None else DEFAULT_QUANTITY for q in assigned]

    found_sum = sum(q for q in assigned if q is not None)
    remaining = declared_total - found_sum
    avg, remainder = divmod(remaining, len(unassigned))
    if remaining < 0:
        # found already exceeds the declared total; the minimum clamp applies
        avg, remainder = 0, 0

    for position, index in enumerate(unassigned):
        assigned[index] = avg + (1 if position < remainder else 0)

    logger.debug(
        "Reconciled %d items against declared %d: %d found (sum %d), %d shared %d",
        item_count,
        declared_total,
        item_count - len(unassigned),
        found_sum,
        len(unassigned),
        remaining,
    )
    return [max(DEFAULT_QUANTITY, q) for q in assigned if q is not None]


def align_scanned_quantities(per_row: Sequence[int | None], scanned: Sequence[int]) -> list[int | None]:
    """
    Fill missing per-row quantities from a positional transcript scan.

    The scan is only trusted when it found exactly one quantity per item;
    otherwise positions cannot be matched and the per-row values are kept.
    """
    if len(scanned) != len(per_row):
        return list(per_row)
    return [row_quantity if row_quantity is not None else scanned[i] for i, row_quantity in enumerate(per_row)]
