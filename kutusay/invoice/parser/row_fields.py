"""Per-row field recovery: location code, item name, quantity and expiry hint."""

import re
from dataclasses import replace

from kutusay.domain.invoice import Row, Token
from kutusay.invoice.vocabulary import InvoiceVocabulary, dosage_form_pattern, dosage_unit_pattern
from kutusay.runtime.logging import get_logger

from .common import (
    DATE_HINT,
    LOCATION_CODE_TOKEN,
    _is_bare_small_number,
    _is_dosage_lookalike,
    _is_price,
    _usable_name,
)

logger = get_logger(__name__)

MAX_BASE_QUANTITY = 50
MAX_BONUS_QUANTITY = 10
MIN_FUSED_YEAR = 20
MAX_FUSED_YEAR = 59

_MONTH = r"(?:0[1-9]|1[0-2])"

# "10+104/27": promotional pair fused with the month/year suffix.
PROMO_FUSED_DATE = re.compile(rf"(?<!\d)(\d{{1,2}})\+(\d{{1,2}}?)({_MONTH})/(\d{{2}})(?!\d)")
# "10+1 04/27"
PROMO_SPACED_DATE = re.compile(r"(?<!\d)(\d{1,2})\+(\d{1,2})\s+(\d{1,2})/(\d{2})(?!\d)")
# "2504/30": quantity fused against the month. Lazy so the month keeps two digits.
QUANTITY_FUSED_DATE = re.compile(rf"(?<![\d.,+/])(\d{{1,2}}?)({_MONTH})/(\d{{2}})(?!\d)")
# "25 04/30"
QUANTITY_SPACED_DATE = re.compile(r"(?<![\d.,+/])(\d{1,2})\s+(\d{1,2})/(\d{2})(?!\d)")


def _valid_month(raw: str) -> bool:
    return 1 <= int(raw) <= 12


def _promo_quantity(base: str, bonus: str) -> int | None:
    base_value, bonus_value = int(base), int(bonus)
    if 1 <= base_value <= MAX_BASE_QUANTITY and 1 <= bonus_value <= MAX_BONUS_QUANTITY:
        return base_value + bonus_value
    return None


def _plain_quantity(raw: str) -> int | None:
    value = int(raw)
    return value if 1 <= value <= MAX_BASE_QUANTITY else None


def extract_quantity(text: str) -> int | None:
    """
    Recover a box quantity from printed row text.

    A number only counts as a quantity when a month/year suffix sits right
    next to it; bare numbers are indistinguishable from prices and location
    remnants. Promotional pairs ("10+1") are summed.
    """
    for match in PROMO_FUSED_DATE.finditer(text):
        quantity = _promo_quantity(match.group(1), match.group(2))
        if quantity is not None:
            return quantity

    for match in PROMO_SPACED_DATE.finditer(text):
        if not _valid_month(match.group(3)):
            continue
        quantity = _promo_quantity(match.group(1), match.group(2))
        if quantity is not None:
            return quantity

    for match in QUANTITY_FUSED_DATE.finditer(text):
        if not MIN_FUSED_YEAR <= int(match.group(3)) <= MAX_FUSED_YEAR:
            continue
        quantity = _plain_quantity(match.group(1))
        if quantity is not None:
            return quantity

    for match in QUANTITY_SPACED_DATE.finditer(text):
        if not _valid_month(match.group(2)):
            continue
        quantity = _plain_quantity(match.group(1))
        if quantity is not None:
            return quantity

    return None


def _find_location_code(tokens: tuple[Token, ...], vocabulary: InvoiceVocabulary) -> tuple[str | None, int]:
    form_pattern = dosage_form_pattern(vocabulary)
    unit_pattern = dosage_unit_pattern(vocabulary)
    for i, token in enumerate(tokens):
        match = LOCATION_CODE_TOKEN.match(token.text.strip())
        if match is None or _is_dosage_lookalike(match.group(1), form_pattern, unit_pattern):
            continue
        return match.group(1).upper(), i
    return None, -1


def _collect_item_name(tokens: tuple[Token, ...], start: int, vocabulary: InvoiceVocabulary) -> str | None:
    form_pattern = dosage_form_pattern(vocabulary)
    unit_pattern = dosage_unit_pattern(vocabulary)
    printed = [token.text.strip() for token in tokens[start:] if not token.is_handwritten and token.text.strip()]

    collected: list[str] = []
    for i, word in enumerate(printed):
        if _is_price(word) or _is_bare_small_number(word):
            break
        collected.append(word)
        if form_pattern.match(word):
            break
        if unit_pattern.match(word):
            following = printed[i + 1] if i + 1 < len(printed) else None
            if following is None or not form_pattern.match(following):
                break

    return _usable_name(" ".join(collected))


def _find_expiry_hint(row: Row) -> str | None:
    handwritten = " ".join(token.text for token in row.handwritten_tokens)
    match = DATE_HINT.search(handwritten)
    if match is None:
        match = DATE_HINT.search(row.text)
    return match.group(0) if match else None


def analyze_row(row: Row, vocabulary: InvoiceVocabulary) -> Row:
    """Return an analysed copy of the row with its optional fields populated."""
    location_code, code_index = _find_location_code(row.tokens, vocabulary)
    item_name = _collect_item_name(row.tokens, code_index + 1, vocabulary) if location_code else None
    printed_text = " ".join(token.text for token in row.printed_tokens)

    analysed = replace(
        row,
        location_code=location_code,
        item_name=item_name,
        quantity=extract_quantity(printed_text),
        expiry_hint=_find_expiry_hint(row),
        is_printed=not row.handwritten_tokens,
    )
    logger.debug(
        "Row %d: code=%s name=%s qty=%s expiry=%s",
        analysed.index,
        analysed.location_code,
        analysed.item_name,
        analysed.quantity,
        analysed.expiry_hint,
    )
    return analysed
