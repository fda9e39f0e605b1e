"""Logging setup for kutusay.

Every module logs through ``get_logger(__name__)``; all loggers hang off the
``kutusay`` namespace, which owns a single stderr handler and does not
propagate to the root logger.

Per-row extraction detail goes to DEBUG, pipeline milestones to INFO,
provider retries and demotions to WARNING.

Environment variables:
    KUTUSAY_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO
"""

import logging
import os
import sys

DEFAULT_LOG_LEVEL = logging.INFO

LOG_NAMESPACE = "kutusay"

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
# DEBUG output carries line numbers
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False


def _level_from_env() -> int:
    return _LEVELS.get(os.environ.get("KUTUSAY_LOG_LEVEL", "").strip().upper(), DEFAULT_LOG_LEVEL)


def _formatter(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT)


def configure_logging(level: int | None = None) -> None:
    """Attach the stderr handler to the namespace logger once per process."""
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(level))

    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.addHandler(handler)
    namespace_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; names outside the package are nested under ``kutusay.``."""
    configure_logging()

    if name == LOG_NAMESPACE or name.startswith(f"{LOG_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOG_NAMESPACE}.{name}")


def set_log_level(level: int) -> None:
    """Change the level at runtime, e.g. for ``kutusay --verbose``."""
    configure_logging(level)
    namespace_logger = logging.getLogger(LOG_NAMESPACE)
    namespace_logger.setLevel(level)
    for handler in namespace_logger.handlers:
        handler.setFormatter(_formatter(level))
