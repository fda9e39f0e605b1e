"""Runtime loader for invoice reference vocabularies."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from kutusay.invoice.vocabulary import InvoiceVocabulary, build_invoice_vocabulary
from kutusay.runtime.paths import get_paths


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file and return parsed dict; missing files map to empty dict."""
    if not path.exists():
        return {}

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=8)
def load_invoice_vocabulary(vocabulary_paths: tuple[str, ...] | None = None) -> InvoiceVocabulary:
    """Load vocabulary files once per process into an immutable vocabulary."""
    if vocabulary_paths is None:
        p = get_paths()
        seen_paths: set[Path] = set()
        files: list[Path] = []
        for candidate in (p.default_vocabulary_rules, p.vocabulary_rules):
            resolved = candidate.resolve()
            if resolved in seen_paths:
                continue
            seen_paths.add(resolved)
            files.append(candidate)
    else:
        files = [Path(path) for path in vocabulary_paths]

    return build_invoice_vocabulary(tuple(_load_toml(path) for path in files))
