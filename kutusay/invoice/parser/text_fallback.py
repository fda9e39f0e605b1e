"""Line-oriented item extraction used when coordinate extraction is unavailable or untrusted."""

import re
from functools import lru_cache

from kutusay.domain.invoice import InvoiceItem
from kutusay.invoice.vocabulary import (
    DrugName,
    InvoiceVocabulary,
    dosage_form_pattern,
    dosage_unit_pattern,
)
from kutusay.runtime.logging import get_logger

from .common import LOCATION_CODE_LINE, _is_dosage_lookalike, _normalize_name_key, _usable_name
from .quantities import reconcile_quantities
from .row_fields import extract_quantity

logger = get_logger(__name__)

# "ASPIRIN 500MG 2 KUTU", "1. ASPIRIN 500MG x 2 ADET"
UNIT_SUFFIXED_ITEM = re.compile(
    r"^(?:\d+[.\s]+)?(.+?)\s+[xX]?\s*(\d+)\s*(?:KUTU|ADET|KTU|AD|PKT|PAKET)\.?$",
    re.IGNORECASE,
)


def _lines_with_offsets(text: str) -> list[tuple[int, str]]:
    offset = 0
    lines: list[tuple[int, str]] = []
    for raw in text.splitlines(keepends=True):
        if raw.strip():
            lines.append((offset + len(raw) - len(raw.lstrip()), raw.strip()))
        offset += len(raw)
    return lines


def find_location_anchored_names(text: str, vocabulary: InvoiceVocabulary) -> list[tuple[int, str]]:
    """
    Names from lines that start with a location code.

    The remainder of the line only counts when it contains a dosage form; the
    name is cut right after that form.

    Returns:
        (document offset, name) pairs in document order.
    """
    form_pattern = dosage_form_pattern(vocabulary)
    unit_pattern = dosage_unit_pattern(vocabulary)
    found: list[tuple[int, str]] = []

    for offset, line in _lines_with_offsets(text):
        match = LOCATION_CODE_LINE.match(line)
        if match is None:
            continue
        code = match.group(1)
        if _is_dosage_lookalike(code, form_pattern, unit_pattern):
            continue

        words = match.group(2).split()
        form_index = next((i for i, word in enumerate(words) if form_pattern.match(word)), None)
        if form_index is None:
            continue
        name = _usable_name(" ".join(words[: form_index + 1]))
        if name:
            found.append((offset, name.upper()))

    return found


def _spelling_pattern(spelling: str) -> re.Pattern[str]:
    """Hyphen/space tolerant pattern: "CO-DIOVAN" also matches "CO DIOVAN" and "CO - DIOVAN"."""
    parts = [re.escape(part) for part in re.split(r"[\s\-]+", spelling) if part]
    body = r"\s*-?\s*".join(parts)
    return re.compile(rf"(?<![A-Z0-9]){body}(?![A-Z])", re.IGNORECASE)


@lru_cache(maxsize=8)
def _drug_spellings(vocabulary: InvoiceVocabulary) -> tuple[tuple[re.Pattern[str], DrugName], ...]:
    spellings = [(spelling, drug) for drug in vocabulary.drugs for spelling in drug.spellings]
    spellings.sort(key=lambda pair: len(pair[0]), reverse=True)
    return tuple((_spelling_pattern(spelling), drug) for spelling, drug in spellings)


@lru_cache(maxsize=8)
def _dosage_suffix_pattern(vocabulary: InvoiceVocabulary) -> re.Pattern[str]:
    units = sorted(vocabulary.dosage_units, key=len, reverse=True) or ["MG"]
    alternation = "|".join(re.escape(unit) for unit in units)
    return re.compile(rf"\s*(\d+(?:[.,]\d+)?)\s*({alternation})(?![A-Z])", re.IGNORECASE)


def _overlaps(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def find_known_drug_names(text: str, vocabulary: InvoiceVocabulary) -> list[tuple[int, str]]:
    """
    Occurrences of known drug names (and their aliases) anywhere in the text.

    Longer spellings are searched first and consume their span, so an alias
    such as "CO DIOVAN" is not also reported as "DIOVAN". Names with dosage
    variants report every "NAME <dose> <unit>" occurrence separately.

    Returns:
        (document offset, canonical name) pairs in document order.
    """
    consumed: list[tuple[int, int]] = []
    found: list[tuple[int, str]] = []
    suffix_pattern = _dosage_suffix_pattern(vocabulary)

    for pattern, drug in _drug_spellings(vocabulary):
        for match in pattern.finditer(text):
            start, end = match.span()
            if _overlaps(start, end, consumed):
                continue
            name = drug.name
            if drug.dosage_variants:
                suffix = suffix_pattern.match(text, end)
                if suffix:
                    name = f"{drug.name} {suffix.group(1)} {suffix.group(2).upper()}"
                    end = suffix.end()
            consumed.append((start, end))
            found.append((start, name))

    found.sort(key=lambda pair: pair[0])
    return found


def _line_end(text: str, offset: int) -> int:
    end = text.find("\n", offset)
    return len(text) if end < 0 else end


def _merge_candidates(text: str, anchored: list[tuple[int, str]], known: list[tuple[int, str]]) -> list[str]:
    """
    Merge both heuristics by document offset, keeping the first name per normalized key.

    A known-name hit on a line that already produced an anchored name is the
    same invoice line and is dropped.
    """
    anchored_lines = [(offset, _line_end(text, offset)) for offset, _ in anchored]
    ordered = sorted(
        [(offset, 0, name) for offset, name in anchored]
        + [
            (offset, 1, name)
            for offset, name in known
            if not any(start <= offset < end for start, end in anchored_lines)
        ]
    )
    kept_names: list[str] = []
    kept_keys: set[str] = set()
    for _, _, name in ordered:
        key = _normalize_name_key(name)
        if not key or key in kept_keys:
            continue
        kept_keys.add(key)
        kept_names.append(name)
    return kept_names


def find_unit_suffixed_items(text: str, vocabulary: InvoiceVocabulary) -> list[InvoiceItem]:
    """Lines that carry their own box count, e.g. "ASPIRIN 500MG 20 TABLET 2 KUTU"."""
    total_words = tuple(word.upper() for word in vocabulary.total_words)
    items: list[InvoiceItem] = []
    seen: set[str] = set()

    for _, line in _lines_with_offsets(text):
        if len(line) < 3 or any(word in line.upper() for word in total_words):
            continue
        match = UNIT_SUFFIXED_ITEM.match(line)
        if match is None:
            continue
        name = _usable_name(match.group(1))
        if name is None or not any(ch.isalpha() for ch in name):
            continue
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        items.append(InvoiceItem(name=name, quantity=max(1, int(match.group(2)))))

    return items


def scan_quantity_lines(text: str) -> list[int]:
    """Quantities beside a date-like suffix, one per line at most, in document order."""
    quantities: list[int] = []
    for _, line in _lines_with_offsets(text):
        quantity = extract_quantity(line)
        if quantity is not None:
            quantities.append(quantity)
    return quantities


def extract_items_from_text(
    text: str, vocabulary: InvoiceVocabulary, declared_total: int | None = None
) -> list[InvoiceItem]:
    """
    Recover invoice items from a plain transcript.

    Location-anchored and known-name heuristics run independently and are
    merged. Only when both find nothing are "NAME qty KUTU" lines tried.
    Quantities are matched positionally to quantity-shaped lines and then
    reconciled with the declared total.
    """
    if not text or not text.strip():
        return []

    anchored = find_location_anchored_names(text, vocabulary)
    known = find_known_drug_names(text, vocabulary)
    names = _merge_candidates(text, anchored, known)
    logger.debug(
        "Textual fallback: %d anchored, %d known-name hits, %d after merge",
        len(anchored),
        len(known),
        len(names),
    )

    if not names:
        legacy = find_unit_suffixed_items(text, vocabulary)
        logger.debug("Textual fallback: %d unit-suffixed lines", len(legacy))
        return legacy

    scanned = scan_quantity_lines(text)
    quantities = reconcile_quantities(len(names), scanned[: len(names)], declared_total)
    return [InvoiceItem(name=name, quantity=quantity) for name, quantity in zip(names, quantities)]
