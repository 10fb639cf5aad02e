"""Logging setup shared by every calvibes module."""

from __future__ import annotations

import logging
import os
from typing import Final

_LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

_configured: bool = False


def log_level() -> int:
    """Level named by CALVIBES_LOG_LEVEL; INFO when unset or unknown."""
    level = logging.getLevelName(os.getenv("CALVIBES_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: int | None = None) -> None:
    """
    Attach one stderr handler to the ``calvibes`` logger.

    Safe to call repeatedly: the handler is added once, later calls only
    change the level.
    """
    global _configured

    package_logger = logging.getLogger("calvibes")
    package_logger.setLevel(log_level() if level is None else level)

    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    package_logger.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
