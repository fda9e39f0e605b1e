"""Group coordinate-tagged OCR tokens into table rows."""

from collections.abc import Sequence

from kutusay.domain.invoice import Row, Token
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

# Used when no token has a usable height.
DEFAULT_ROW_TOLERANCE = 8.0
MIN_ROW_TOLERANCE = 5.0
MAX_ROW_TOLERANCE = 15.0


def row_tolerance(tokens: Sequence[Token]) -> float:
    """Half the average non-zero token height, clamped so it adapts to resolution without merging rows."""
    heights = [token.height for token in tokens if token.height > 0]
    if not heights:
        return DEFAULT_ROW_TOLERANCE
    average = sum(heights) / len(heights)
    return max(MIN_ROW_TOLERANCE, min(MAX_ROW_TOLERANCE, average / 2))


def group_tokens_into_rows(tokens: Sequence[Token]) -> list[Row]:
    """
    Cluster tokens into rows ordered top-to-bottom, tokens left-to-right.

    Each row is anchored at the center Y of the first token placed in it. The
    anchor never moves, so a slowly drifting sequence of tokens cannot chain
    unrelated rows together. A token joins the closest anchor within
    tolerance, otherwise it opens a new row.
    """
    if not tokens:
        return []

    tolerance = row_tolerance(tokens)
    ordered = sorted(tokens, key=lambda t: t.center_y)

    groups: list[list[Token]] = []
    anchors: list[float] = []

    for token in ordered:
        best_index = None
        best_distance = None
        for i, anchor in enumerate(anchors):
            distance = abs(token.center_y - anchor)
            if distance > tolerance:
                continue
            if best_distance is None or distance < best_distance:
                best_distance = distance
                best_index = i

        if best_index is None:
            groups.append([token])
            anchors.append(token.center_y)
        else:
            groups[best_index].append(token)

    logger.debug("Grouped %d tokens into %d rows (tolerance %.1f)", len(tokens), len(groups), tolerance)

    indexed = sorted(zip(anchors, groups), key=lambda pair: pair[0])
    return [
        Row(index=i, center_y=anchor, tokens=tuple(sorted(group, key=lambda t: t.min_x)))
        for i, (anchor, group) in enumerate(indexed)
    ]


def rows_to_text(rows: Sequence[Row]) -> str:
    """Render grouped rows as a plain transcript, one row per line."""
    return "\n".join(row.text for row in rows if row.tokens)
