"""Invoice-level field extraction: declared totals, invoice number and supplier."""

import re
from collections.abc import Sequence
from functools import lru_cache

from kutusay.invoice.vocabulary import InvoiceVocabulary
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

# Characters OCR routinely confuses inside the unit word ("ADETTIR" -> "AD3TT1R").
_OCR_CONFUSABLE = {
    "O": "[O0D]",
    "0": "[O0D]",
    "D": "[DO0]",
    "I": "[I1L]",
    "1": "[I1L]",
    "L": "[LI1]",
    "S": "[S5]",
    "5": "[S5]",
    "E": "[E3]",
    "3": "[E3]",
    "T": "[T7]",
    "7": "[T7]",
}

# Horizontal whitespace only, so "same line" patterns cannot span lines.
_SP = r"[^\S\n]*"
_SEP = r"[\s,.;:]*"

E_INVOICE_NUMBER = re.compile(r"\b([A-Z0-9]{3}20\d{11})\b")
LEGACY_E_INVOICE_NUMBER = re.compile(r"\b(B2K\d{10,})\b")
LABELLED_INVOICE_NUMBER = re.compile(
    r"(?:E-?\s?AR[SŞ][Iİı]V|FATURA|INVOICE|BELGE|[Iİ]RSAL[Iİı]YE)\s*"
    r"(?:NO|NUMARAS[IİıI])\.?\s*:?\s*([A-Z0-9][A-Z0-9/\-]{2,})",
    re.IGNORECASE,
)

SUPPLIER_DEPOT_NAME = re.compile(r"([A-ZÇĞİÖŞÜa-zçğıöşü]+\s+)?Ecza\s*Deposu", re.IGNORECASE)
SUPPLIER_COMPANY_HINT = re.compile(r"(?:\bA\.\s?[SŞ]\.?|\bLTD\b|ECZA|DEPO|[Iİ]LA[CÇ])", re.IGNORECASE)
SUPPLIER_HEADER_LINES = 10

_TURKISH_FOLD = str.maketrans("İIıÇŞĞÖÜçşğöü", "IIICSGOUCSGOU")


def _ocr_tolerant(word: str) -> str:
    return "".join(_OCR_CONFUSABLE.get(ch, re.escape(ch)) for ch in word.upper())


def _words(words: Sequence[str], ocr_tolerant: bool = False) -> str:
    if not words:
        return "(?!)"
    ordered = sorted(words, key=len, reverse=True)
    parts = [_ocr_tolerant(w) if ocr_tolerant else re.escape(w) for w in ordered]
    return "(?:" + "|".join(parts) + ")"


@lru_cache(maxsize=8)
def _totals_patterns(vocabulary: InvoiceVocabulary) -> tuple[tuple[str, re.Pattern[str], bool], ...]:
    """Declared-total patterns in priority order as (label, pattern, reversed)."""
    total = _words(vocabulary.total_words)
    items = _words(vocabulary.item_words)
    units = _words(vocabulary.unit_words, ocr_tolerant=True)
    flags = re.IGNORECASE
    return (
        (
            "same_line",
            re.compile(rf"{total}{_SP}:?{_SP}(\d+){_SP}{items}[^\S\n,.;:]*[,.;:]?{_SP}(\d+){_SP}{units}", flags),
            False,
        ),
        ("total_own_line", re.compile(rf"{total}{_SP}:?{_SP}\n\s*(\d+)\s*{items}{_SEP}(\d+)\s*{units}", flags), False),
        ("bare_phrase", re.compile(rf"(?<!\d)(\d+)\s*{items}{_SEP}(\d+)\s*{units}", flags), False),
        ("reversed", re.compile(rf"(?<!\d)(\d+)\s*{units}{_SEP}(\d+)\s*{items}", flags), True),
    )


@lru_cache(maxsize=8)
def _independent_patterns(vocabulary: InvoiceVocabulary) -> tuple[re.Pattern[str], re.Pattern[str]]:
    items = _words(vocabulary.item_words)
    units = _words(vocabulary.unit_words, ocr_tolerant=True)
    return (
        re.compile(rf"(?<!\d)(\d+)\s*{items}", re.IGNORECASE),
        re.compile(rf"(?<!\d)(\d+)\s*{units}", re.IGNORECASE),
    )


def extract_declared_totals(text: str, vocabulary: InvoiceVocabulary) -> tuple[int | None, int | None]:
    """
    Find the invoice's own "TOTAL N ITEMS, M UNITS" summary.

    Phrasings are tried in priority order: the full sentence on one line,
    TOTAL on its own line (or omitted), the unit count first, and finally
    independent item/unit counts anywhere in the text. Independent counts are
    only paired when the item count is below the unit count.

    Returns:
        (declared_item_count, declared_total_qty); either may be None.
    """
    if not text or not text.strip():
        return None, None

    for label, pattern, reversed_order in _totals_patterns(vocabulary):
        match = pattern.search(text)
        if match is None:
            continue
        first, second = int(match.group(1)), int(match.group(2))
        items, quantity = (second, first) if reversed_order else (first, second)
        logger.debug("Declared totals (%s): %d items, %d units", label, items, quantity)
        return items, quantity

    item_pattern, unit_pattern = _independent_patterns(vocabulary)
    item_match = item_pattern.search(text)
    unit_match = unit_pattern.search(text)
    if item_match and unit_match:
        items, quantity = int(item_match.group(1)), int(unit_match.group(1))
        if items < quantity:
            logger.debug("Declared totals (independent): %d items, %d units", items, quantity)
            return items, quantity
        logger.debug("Rejected independent totals pairing %d items / %d units", items, quantity)
        return None, None
    if item_match:
        return int(item_match.group(1)), None
    if unit_match:
        return None, int(unit_match.group(1))
    return None, None


def extract_invoice_number(text: str) -> str | None:
    """Find the e-invoice number, else a labelled invoice/document number."""
    if not text:
        return None

    for pattern in (E_INVOICE_NUMBER, LEGACY_E_INVOICE_NUMBER):
        match = pattern.search(text)
        if match:
            return match.group(1)

    for line in text.splitlines():
        match = LABELLED_INVOICE_NUMBER.search(line)
        if match and any(ch.isdigit() for ch in match.group(1)):
            return match.group(1).upper()
    return None


def _fold(text: str) -> str:
    return " ".join(text.translate(_TURKISH_FOLD).upper().split())


def extract_supplier_name(lines: Sequence[str], text: str, vocabulary: InvoiceVocabulary) -> str | None:
    """
    Identify the supplying depot.

    Known suppliers are matched diacritic-insensitively and returned in their
    canonical spelling. Otherwise "<word> Ecza Deposu" anywhere in the text,
    then an early header line that looks like a company name.
    """
    folded = _fold(text)
    for supplier in vocabulary.known_suppliers:
        if _fold(supplier) in folded:
            return supplier

    match = SUPPLIER_DEPOT_NAME.search(text)
    if match:
        return " ".join(match.group(0).split())

    for line in lines[:SUPPLIER_HEADER_LINES]:
        stripped = line.strip()
        if len(stripped) > 5 and SUPPLIER_COMPANY_HINT.search(stripped):
            return stripped
    return None
