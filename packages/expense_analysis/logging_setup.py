"""Logging for the ``expense_analysis`` package.

Modules log one event per line as ``area:event key=value ...``, for example
``parse:invalid_date row=4 column=purchase value='x'``. :class:`EventFormatter`
lays those lines out as aligned columns so a terminal session stays readable::

    12:01:07 WARNING parse:invalid_date      row=4 column=purchase value='x'

Library use is silent (a ``NullHandler`` on the package logger); the CLI calls
:func:`configure_logging` once from its root callback.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "expense_analysis"
_LEVEL_ENV = "EXPENSE_ANALYSIS_LOG_LEVEL"
_EVENT_WIDTH = 24
_CONFIGURED = False

LEVEL_NAMES: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class EventFormatter(logging.Formatter):
    """Split ``area:event fields`` messages into an event column and fields."""

    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        head, _, fields = message.partition(" ")
        if ":" not in head:
            # Third-party or free-form message
            head, fields = message, ""
        stamp = self.formatTime(record, self.datefmt)
        line = f"{stamp} {record.levelname:<7} {head:<{_EVENT_WIDTH}}"
        if fields:
            line = f"{line} {fields}"
        line = line.rstrip()
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def parse_level(value: str | None) -> int:
    """Level for a CLI ``--log-level`` value or ``EXPENSE_ANALYSIS_LOG_LEVEL``.

    ``None`` falls back to the environment variable, then ``WARNING``.
    Unknown names raise ``ValueError``.
    """

    raw = value if value is not None else os.getenv(_LEVEL_ENV)
    if raw is None or not raw.strip():
        return logging.WARNING
    try:
        return LEVEL_NAMES[raw.strip().lower()]
    except KeyError:
        allowed = ", ".join(n for n in LEVEL_NAMES if n != "warn")
        raise ValueError(f"unknown log level {raw!r} (choose from {allowed})") from None


def configure_logging(level: str | None = None, *, stream: IO[str] = sys.stderr) -> logging.Logger:
    """Attach the event handler to the package logger; later calls only re-level."""

    global _CONFIGURED
    resolved = parse_level(level)
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    logger.setLevel(resolved)
    if _CONFIGURED:
        return logger

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(EventFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _CONFIGURED = True
    return logger


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["EventFormatter", "LEVEL_NAMES", "configure_logging", "get_logger", "parse_level"]
