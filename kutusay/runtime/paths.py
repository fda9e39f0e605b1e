"""Centralized path management for the kutusay project.

This module provides a single source of truth for all project paths: the
configuration directory holding vocabulary overrides, and the invoice
working directories used by the CLI and upload server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Determine the project root directory (KUTUSAY_HOME, else the working directory)."""
    home = os.environ.get("KUTUSAY_HOME", "").strip()
    if home:
        return Path(home).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all project-related paths.

    All paths are computed relative to the project root, ensuring consistency
    across all modules regardless of where they are imported from.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Source code paths ---
    @property
    def src(self) -> Path:
        """kutusay package directory."""
        return Path(__file__).resolve().parents[1]

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def vocabulary_rules(self) -> Path:
        """Project-level vocabulary overrides TOML file."""
        return self.config / "vocabulary.toml"

    @property
    def default_vocabulary_rules(self) -> Path:
        """Packaged default vocabulary TOML file."""
        return self.src / "invoice" / "rules" / "default_vocabulary.toml"

    # --- Invoice paths ---
    @property
    def invoices(self) -> Path:
        """Root invoices directory."""
        return self.root / "invoices"

    @property
    def invoices_scanned(self) -> Path:
        """Extracted invoice items awaiting manual review (JSON)."""
        return self.invoices / "scanned"

    @property
    def invoices_ocr_json(self) -> Path:
        """Raw OCR results (JSON)."""
        return self.invoices / "ocr_json"

    def ensure_invoice_directories(self) -> None:
        """Create all invoice-related directories if they don't exist."""
        self.invoices_scanned.mkdir(parents=True, exist_ok=True)
        self.invoices_ocr_json.mkdir(parents=True, exist_ok=True)


# Module-level singleton
_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance.

    Returns:
        The global ProjectPaths instance.
    """
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def reset_paths() -> None:
    """Drop the cached ProjectPaths so the next call re-reads KUTUSAY_HOME."""
    global _paths
    _paths = None
