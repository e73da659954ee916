"""Logging setup for the command-line entry point."""

from __future__ import annotations

import logging
import sys
from typing import Final

LOGGER_NAME: Final[str] = "dirzip"
LOG_FORMAT: Final[str] = "%(levelname)s %(name)s - %(message)s"


def configure_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the ``dirzip`` logger and set its level.

    Calling it again replaces the handler, so the current ``sys.stderr`` is used.
    """

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger(LOGGER_NAME)
    for existing in [h for h in logger.handlers if getattr(h, "_dirzip_handler", False)]:
        logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._dirzip_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


__all__ = ["LOGGER_NAME", "LOG_FORMAT", "configure_logging"]
