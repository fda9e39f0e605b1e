"""Shared pytest fixtures for kutusay tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from kutusay.invoice.vocabulary import InvoiceVocabulary
from kutusay.runtime.paths import ProjectPaths, reset_paths
from kutusay.runtime.vocabulary_rules import load_invoice_vocabulary


@pytest.fixture
def vocabulary() -> InvoiceVocabulary:
    """The packaged default vocabulary, without any project-level overrides."""
    return load_invoice_vocabulary((str(ProjectPaths().default_vocabulary_rules),))


@pytest.fixture
def kutusay_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point KUTUSAY_HOME at a temporary directory for storage tests."""
    monkeypatch.setenv("KUTUSAY_HOME", str(tmp_path))
    reset_paths()
    yield tmp_path.resolve()
    reset_paths()
