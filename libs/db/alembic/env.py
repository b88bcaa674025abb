# ruff: noqa: I001
"""
Alembic configuration for the `db` library.

The database URL comes from the Alembic config when set (programmatic runs via
``db.migrations.upgrade_to_head`` always set it), otherwise from
``EXPENSE_ANALYSIS_DATABASE_URL`` or ``DATABASE_URL``. Both offline and online
migrations are supported.
"""

from __future__ import annotations

import os
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import load_dotenv, find_dotenv


# Alembic Config object, which provides access to the values within
# the .ini file in use (if any).
config = context.config

# Interpret the config file for Python logging (CLI runs only).
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Discover a workspace-level .env from the CWD upwards without overriding
# anything already exported.
dotenv_path = find_dotenv(usecwd=True)
if dotenv_path:
    load_dotenv(dotenv_path=dotenv_path, override=False)

db_url_maybe = (
    config.get_main_option("sqlalchemy.url")
    or os.getenv("EXPENSE_ANALYSIS_DATABASE_URL")
    or os.getenv("DATABASE_URL")
)
if not db_url_maybe:
    raise RuntimeError(
        "No database URL. Set EXPENSE_ANALYSIS_DATABASE_URL or DATABASE_URL, or "
        "'sqlalchemy.url' in alembic.ini."
    )
db_url: str = db_url_maybe

logger = logging.getLogger("alembic.env")

try:  # pragma: no cover - import side effects only
    import db as _db_pkg

    target_metadata = getattr(_db_pkg, "metadata", None)
except ImportError as exc:  # pragma: no cover - libs/db/src not importable
    logger.warning(
        "Could not import db.metadata for autogenerate; falling back to None. Error: %s",
        exc,
    )
    target_metadata = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=_is_sqlite(db_url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = db_url
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_is_sqlite(db_url),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
