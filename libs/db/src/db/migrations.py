"""Programmatic Alembic runner.

Applies the ordered revisions under ``libs/db/alembic/versions`` to a given
database URL without requiring an ``alembic.ini`` on the caller's side.
"""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

# libs/db/src/db/migrations.py -> libs/db/alembic
SCRIPT_LOCATION = Path(__file__).resolve().parents[2] / "alembic"


def alembic_config(database_url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    # ConfigParser interpolation treats "%" specially
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def upgrade_to_head(database_url: str) -> None:
    """Bring the schema at ``database_url`` up to the latest revision."""

    command.upgrade(alembic_config(database_url), "head")


def downgrade_to_base(database_url: str) -> None:
    command.downgrade(alembic_config(database_url), "base")


__all__ = ["SCRIPT_LOCATION", "alembic_config", "upgrade_to_head", "downgrade_to_base"]
