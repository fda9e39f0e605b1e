"""Shared constants and helpers for invoice parsing."""

import re

# Shelf/bin code printed at the start of each invoice line, e.g. "4AD" or "12BC-".
LOCATION_CODE_TOKEN = re.compile(r"^(\d{1,2}[A-Z]{2})[-.]?$", re.IGNORECASE)

# Same code at the start of a transcript line, separator optional ("4AD-APRANAX", "4AD APRANAX").
LOCATION_CODE_LINE = re.compile(r"^\s*(\d{1,2}[A-Z]{2})(?:[-.]\s*|\s+|(?=[A-Z]))(\S.*)$", re.IGNORECASE)

# Monetary amounts: "12,50", "1.234,56", "45.90"
PRICE_TOKEN = re.compile(r"^\d{1,3}(?:[.,]\d{3})*[.,]\d{2}$")
PRICE_ANYWHERE = re.compile(r"\d{1,3}(?:[.,]\d{3})*[.,]\d{2}")
BARE_SMALL_NUMBER = re.compile(r"^\d{1,2}$")

# Month/year hint ("04/27"), the evidence a number next to it is a quantity.
DATE_HINT = re.compile(r"\d{1,2}/\d{2}")

_TRAILING_NOISE = re.compile(
    r"(?:\s+(?:\d{1,3}(?:[.,]\d{3})*[.,]\d{2}|%\s*\d+(?:[.,]\d+)?|\d+(?:[.,]\d+)?\s*%))+\s*$"
    r"|[\s.]+$"
)
_WHITESPACE = re.compile(r"\s+")


def _clean_item_name(text: str) -> str:
    """Drop trailing prices, percentages, periods and redundant whitespace from a name."""
    cleaned = _WHITESPACE.sub(" ", text.replace("|", " ").replace("_", " ")).strip()
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _TRAILING_NOISE.sub("", cleaned).strip()
    return cleaned


def _usable_name(text: str) -> str | None:
    """Cleaned name, or None when fewer than 3 characters survive cleanup."""
    cleaned = _clean_item_name(text)
    return cleaned if len(cleaned) >= 3 else None


def _normalize_name_key(text: str) -> str:
    """Uppercase and strip everything but letters and digits, for deduplication."""
    return "".join(ch for ch in text.upper() if ch.isalnum())


def _is_dosage_lookalike(code: str, form_pattern: re.Pattern[str], unit_pattern: re.Pattern[str]) -> bool:
    """Two-digit codes like "20TB" or "10MG" are dosage tokens; single-digit codes such as "2GR" are shelf codes."""
    return len(code) > 3 and bool(form_pattern.match(code) or unit_pattern.match(code))


def _is_price(text: str) -> bool:
    return PRICE_TOKEN.match(text.strip()) is not None


def _is_bare_small_number(text: str) -> bool:
    return BARE_SMALL_NUMBER.match(text.strip()) is not None


def _transcript_lines(text: str) -> list[str]:
    """Non-blank transcript lines, stripped."""
    return [line.strip() for line in text.splitlines() if line.strip()]
