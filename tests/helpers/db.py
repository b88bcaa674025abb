"""DB helpers for tests: bootstrap a migrated temporary SQLite database."""

from __future__ import annotations

from pathlib import Path

from db.client import Database
from db.migrations import upgrade_to_head
from sqlalchemy import inspect


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, migrate it to head, and return the URL.

    A file-backed database lets every SQLAlchemy connection see the same
    state (in-memory SQLite is per-connection by default).
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite+pysqlite:///{db_file}"
    upgrade_to_head(url)
    return url


def open_database(db_file: Path) -> Database:
    """Bootstrap ``db_file`` and return a :class:`Database` bound to it."""

    return Database.from_url(bootstrap_sqlite_db(db_file))


def table_names(database: Database) -> set[str]:
    return set(inspect(database.engine).get_table_names())
