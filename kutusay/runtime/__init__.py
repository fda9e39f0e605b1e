"""Runtime infrastructure for the kutusay project.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- OCR provider settings via load_ocr_settings(), OcrSettings
- Vocabulary loading via load_invoice_vocabulary()

Usage:
    from kutusay.runtime import get_logger, get_paths, load_invoice_vocabulary

    logger = get_logger(__name__)
    vocabulary = load_invoice_vocabulary()
"""

from kutusay.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from kutusay.runtime.paths import ProjectPaths, get_paths, reset_paths
from kutusay.runtime.settings import OcrSettings, load_ocr_settings
from kutusay.runtime.vocabulary_rules import load_invoice_vocabulary

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
    # Settings
    "OcrSettings",
    "load_ocr_settings",
    # Vocabulary
    "load_invoice_vocabulary",
]
