"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from space_rental.utils.config import get_settings


_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Every layer logs through the same handler so reservation numbers and
    request identifiers line up in one stream.
    """

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format=(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        ),
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)


def log_fields(**fields: object) -> str:
    """Render identifiers as ``key=value`` pairs for diagnostic log lines."""
    return " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
