"""
Structured logging helpers for the relayer.

Modules obtain a logger with ``get_logger(__name__)`` and attach context
through ``extra={...}``; the default formatter appends those fields to the
message so they survive plain-text log collection.

The level can be overridden with the FFH_LOG_LEVEL environment variable.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

ROOT_LOGGER_NAME = "freeforhumans"
_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s%(context)s"

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime", "context"}


class ContextFormatter(logging.Formatter):
    """Formatter that renders ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED}
        record.context = (" | " + " ".join(f"{k}={v}" for k, v in fields.items())) if fields else ""
        return super().format(record)


def configure_logging(level: Union[int, str, None] = None) -> logging.Logger:
    """Attach a stream handler to the package root logger (idempotent)."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ContextFormatter(_DEFAULT_FORMAT))
        root.addHandler(handler)

    if level is None:
        level = os.getenv("FFH_LOG_LEVEL", "INFO")
    set_level(level)
    return root


def set_level(level: Union[int, str]) -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the package root, configuring the root on first use."""
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        configure_logging()
    if not name or name == ROOT_LOGGER_NAME:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = ["configure_logging", "set_level", "get_logger", "ContextFormatter"]
