"""Plausibility checks deciding whether a coordinate extraction can be trusted."""

import re
from dataclasses import dataclass
from functools import lru_cache

from kutusay.domain.invoice import ExtractedTable
from kutusay.invoice.errors import ValidationRejected
from kutusay.invoice.vocabulary import InvoiceVocabulary
from kutusay.runtime.logging import get_logger

logger = get_logger(__name__)

MIN_MEDICINE_ROWS = 5
MIN_DECLARED_ROW_RATIO = 0.5
MAX_SUSPICIOUS_RATIO = 0.30
KNOWN_NAME_PREFIX_LENGTH = 5


@dataclass(frozen=True)
class ValidationReport:
    accepted: bool
    reasons: tuple[str, ...]
    medicine_rows: int
    suspicious_ratio: float
    known_name_hits: int


@lru_cache(maxsize=8)
def _embedded_code_pattern(vocabulary: InvoiceVocabulary) -> re.Pattern[str]:
    """Location-code-shaped substrings inside a name; strengths such as "10MG" do not count."""
    units = sorted((u for u in vocabulary.dosage_units if len(u) >= 2), key=len, reverse=True)
    exclusion = "(?!(?:" + "|".join(re.escape(u) for u in units) + r")\b)" if units else ""
    return re.compile(rf"(?<![A-Z0-9])\d{{1,2}}{exclusion}[A-Z]{{2}}(?![A-Z])", re.IGNORECASE)


def _is_suspicious_name(name: str, vocabulary: InvoiceVocabulary) -> bool:
    """Two or more embedded codes mean neighbouring rows were fused into one name."""
    return len(_embedded_code_pattern(vocabulary).findall(name)) > 1


def _known_prefixes(vocabulary: InvoiceVocabulary) -> tuple[str, ...]:
    return tuple(name[:KNOWN_NAME_PREFIX_LENGTH].upper() for name in vocabulary.drug_names if name)


def validate_table(table: ExtractedTable, vocabulary: InvoiceVocabulary) -> ValidationReport:
    """Score a candidate table; every rule must pass for the table to be accepted."""
    names = [row.item_name or "" for row in table.medicine_rows]
    count = len(names)
    reasons: list[str] = []

    if count < MIN_MEDICINE_ROWS:
        reasons.append(f"only {count} medicine rows (minimum {MIN_MEDICINE_ROWS})")

    declared = table.declared_item_count
    if declared is not None and declared > 0 and count < MIN_DECLARED_ROW_RATIO * declared:
        reasons.append(f"{count} medicine rows for {declared} declared items")

    suspicious = sum(1 for name in names if _is_suspicious_name(name, vocabulary))
    suspicious_ratio = suspicious / count if count else 0.0
    if count and suspicious_ratio >= MAX_SUSPICIOUS_RATIO:
        reasons.append(f"{suspicious}/{count} names look like fused rows")

    prefixes = _known_prefixes(vocabulary)
    known_hits = sum(1 for name in names if any(prefix in name.upper() for prefix in prefixes))
    if known_hits == 0:
        reasons.append("no known drug name recognized")

    report = ValidationReport(
        accepted=not reasons,
        reasons=tuple(reasons),
        medicine_rows=count,
        suspicious_ratio=suspicious_ratio,
        known_name_hits=known_hits,
    )
    logger.debug(
        "Validation %s: rows=%d suspicious=%.2f known=%d %s",
        "accepted" if report.accepted else "rejected",
        count,
        suspicious_ratio,
        known_hits,
        "; ".join(reasons),
    )
    return report


def require_valid_table(table: ExtractedTable, vocabulary: InvoiceVocabulary) -> ValidationReport:
    """Like validate_table, but raise ValidationRejected when any rule fails."""
    report = validate_table(table, vocabulary)
    if not report.accepted:
        raise ValidationRejected(list(report.reasons))
    return report
