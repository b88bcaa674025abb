"""Explicit SQLAlchemy storage context for the workspace.

There is no process-wide engine: callers construct a :class:`Database` and
pass it to whatever layer needs storage.

Usage
-----
from db.client import Database

database = Database.from_url("sqlite+pysqlite:///ledger.sqlite3")
with database.session_scope() as s:
    s.execute(...)
database.dispose()
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn: Any, _record: Any) -> None:  # pragma: no cover - tiny bridge
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys = ON")
        finally:
            cursor.close()


class Database:
    """Own an engine and a session factory bound to it."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False, class_=Session
        )

    @classmethod
    def from_url(cls, database_url: str, *, echo: bool = False) -> Database:
        if not database_url:
            raise RuntimeError("database URL is empty; cannot initialize database client")
        engine = create_engine(database_url, pool_pre_ping=True, echo=echo)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(engine)
        return cls(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def session(self) -> Session:
        """Return a new session; the caller commits and closes it."""

        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


__all__ = ["Database"]
