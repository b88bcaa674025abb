# ruff: noqa: I001
"""Category overrides keyed by transaction fingerprint.

Revision ID: 0004_ea_category_overrides
Revises: 0003_ea_chart_preferences
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0004_ea_category_overrides"
down_revision: str | None = "0003_ea_chart_preferences"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # fingerprint = sha256 hex of the transaction duplicate key
    op.create_table(
        "ea_category_overrides",
        sa.Column("fingerprint", sa.CHAR(64), primary_key=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )


def downgrade() -> None:
    op.drop_table("ea_category_overrides")
