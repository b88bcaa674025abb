"""Environment-driven settings.

Resolution order for the database URL:

1. an explicit value (``--database-url`` on the CLI),
2. ``EXPENSE_ANALYSIS_DATABASE_URL``,
3. ``DATABASE_URL``,
4. a SQLite file ``ledger.sqlite3`` under ``EA_DATA_DIR`` (default
   ``./.expense_analysis``).

The CLI loads a local ``.env`` via ``python-dotenv`` before any of these are
consulted; library callers are expected to pass URLs explicitly.
"""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .logging_setup import get_logger

logger = get_logger(__name__)

DATABASE_URL_ENV = "EXPENSE_ANALYSIS_DATABASE_URL"
DATA_DIR_ENV = "EA_DATA_DIR"
LOAD_CONCURRENCY_ENV = "EA_LOAD_CONCURRENCY"
TIMEZONE_ENV = "EA_TIMEZONE"

DEFAULT_DATA_DIR = ".expense_analysis"
SQLITE_FILENAME = "ledger.sqlite3"
DEFAULT_LOAD_CONCURRENCY = 4
DEFAULT_TIMEZONE = "Europe/Zurich"
_MAX_LOAD_CONCURRENCY = 16


def get_data_dir() -> Path:
    raw = os.getenv(DATA_DIR_ENV)
    return Path(raw).expanduser() if raw and raw.strip() else Path.cwd() / DEFAULT_DATA_DIR


def get_database_url(override: str | None = None) -> str:
    """Return the database URL following the documented resolution order.

    When falling back to the SQLite default, the data directory is created.
    """

    for candidate in (override, os.getenv(DATABASE_URL_ENV), os.getenv("DATABASE_URL")):
        if candidate and candidate.strip():
            return candidate.strip()

    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    path = (data_dir / SQLITE_FILENAME).resolve()
    logger.debug("config:default_sqlite path=%s", path)
    return f"sqlite+pysqlite:///{path}"


def get_load_concurrency() -> int:
    """Worker cap for concurrent statement parsing (``EA_LOAD_CONCURRENCY``).

    Invalid or non-positive values fall back to the default; the value is
    capped to keep file handle usage modest.
    """

    raw = os.getenv(LOAD_CONCURRENCY_ENV)
    try:
        value = int(raw) if raw else DEFAULT_LOAD_CONCURRENCY
    except ValueError:
        logger.warning("config:invalid_concurrency value=%r", raw)
        value = DEFAULT_LOAD_CONCURRENCY
    if value < 1:
        value = DEFAULT_LOAD_CONCURRENCY
    return min(value, _MAX_LOAD_CONCURRENCY)


def get_timezone() -> ZoneInfo:
    """Zone whose calendar days statement dates refer to (``EA_TIMEZONE``).

    Timestamps with an offset, as found in backups, are converted to this
    zone before their day is taken. Unknown names fall back to the default.
    """

    raw = (os.getenv(TIMEZONE_ENV) or "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("config:invalid_timezone value=%r", raw)
        return ZoneInfo(DEFAULT_TIMEZONE)


__all__ = [
    "DATABASE_URL_ENV",
    "DATA_DIR_ENV",
    "LOAD_CONCURRENCY_ENV",
    "TIMEZONE_ENV",
    "get_timezone",
    "get_data_dir",
    "get_database_url",
    "get_load_concurrency",
]
