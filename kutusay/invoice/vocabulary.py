"""Reference vocabularies for invoice parsing.

Known drug names, dosage forms/units and the keywords of the declared-totals
summary line. Defaults live in rules/default_vocabulary.toml; project files
can add to them. Everything here is built once into an immutable
`InvoiceVocabulary` and only read afterwards.

To add new names:
1. Add a [[drugs]] table to config/vocabulary.toml
2. Set dosage_variants = true if the invoice lists several strengths of it
3. List OCR-split spellings under aliases
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class DrugName:
    """A known drug name with its accepted spellings."""

    name: str
    aliases: tuple[str, ...] = ()
    dosage_variants: bool = False

    @property
    def spellings(self) -> tuple[str, ...]:
        return (self.name,) + self.aliases


@dataclass(frozen=True)
class InvoiceVocabulary:
    """In-memory reference tables shared by all parser components."""

    drugs: tuple[DrugName, ...]
    dosage_forms: frozenset[str]
    dosage_units: frozenset[str]
    total_words: tuple[str, ...]
    item_words: tuple[str, ...]
    unit_words: tuple[str, ...]
    known_suppliers: tuple[str, ...] = ()

    @property
    def drug_names(self) -> tuple[str, ...]:
        return tuple(drug.name for drug in self.drugs)


def _normalize_words(raw: Any) -> tuple[str, ...]:
    """Normalize a TOML string/list value into uppercase, non-empty words."""
    if isinstance(raw, str):
        value = raw.strip().upper()
        return (value,) if value else tuple()
    if isinstance(raw, list):
        return tuple(str(v).strip().upper() for v in raw if str(v).strip())
    return tuple()


def _extend_unique(target: list[str], values: Sequence[str]) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def build_invoice_vocabulary(configs: Sequence[Mapping[str, Any]] | None = None) -> InvoiceVocabulary:
    """Merge vocabulary configs (lowest priority first) into one immutable vocabulary."""
    drugs: dict[str, DrugName] = {}
    dosage_forms: list[str] = []
    dosage_units: list[str] = []
    total_words: list[str] = []
    item_words: list[str] = []
    unit_words: list[str] = []
    known_suppliers: list[str] = []

    for config in configs or ():
        _extend_unique(dosage_forms, _normalize_words(config.get("dosage_forms", [])))
        _extend_unique(dosage_units, _normalize_words(config.get("dosage_units", [])))
        for supplier in config.get("known_suppliers", []):
            supplier_name = str(supplier).strip()
            if supplier_name and supplier_name not in known_suppliers:
                known_suppliers.append(supplier_name)

        totals = config.get("declared_totals", {})
        if isinstance(totals, Mapping):
            _extend_unique(total_words, _normalize_words(totals.get("total_words", [])))
            _extend_unique(item_words, _normalize_words(totals.get("item_words", [])))
            _extend_unique(unit_words, _normalize_words(totals.get("unit_words", [])))

        for entry in config.get("drugs", []):
            if not isinstance(entry, Mapping):
                continue
            names = _normalize_words(entry.get("name", ""))
            if not names:
                continue
            name = names[0]
            aliases = tuple(a for a in _normalize_words(entry.get("aliases", [])) if a != name)
            previous = drugs.get(name)
            if previous is not None:
                merged = list(previous.aliases)
                _extend_unique(merged, aliases)
                aliases = tuple(merged)
            drugs[name] = DrugName(
                name=name,
                aliases=aliases,
                dosage_variants=bool(entry.get("dosage_variants", previous.dosage_variants if previous else False)),
            )

    # Longer spellings first so the unit-word regexes prefer "ADETTIR" over "ADET".
    unit_words.sort(key=len, reverse=True)
    item_words.sort(key=len, reverse=True)

    return InvoiceVocabulary(
        drugs=tuple(drugs.values()),
        dosage_forms=frozenset(dosage_forms),
        dosage_units=frozenset(dosage_units),
        total_words=tuple(total_words),
        item_words=tuple(item_words),
        unit_words=tuple(unit_words),
        known_suppliers=tuple(known_suppliers),
    )


def _alternation(words: Sequence[str] | frozenset[str]) -> str:
    if not words:
        return "(?!)"
    return "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))


def dosage_form_pattern(vocabulary: InvoiceVocabulary) -> re.Pattern[str]:
    """Token pattern for a dosage form, optionally prefixed by a count ("20TB") or dotted ("FTB.")."""
    return re.compile(rf"^\d*(?:{_alternation(vocabulary.dosage_forms)})\.?$", re.IGNORECASE)


def dosage_unit_pattern(vocabulary: InvoiceVocabulary) -> re.Pattern[str]:
    """Token pattern for a strength unit, optionally prefixed by the amount ("500MG", "2,5ML")."""
    return re.compile(rf"^(?:\d+(?:[.,]\d+)?)?(?:{_alternation(vocabulary.dosage_units)})\.?$", re.IGNORECASE)
