# ruff: noqa: I001
"""Chart preferences (single row).

Revision ID: 0003_ea_chart_preferences
Revises: 0002_ea_budgets
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0003_ea_chart_preferences"
down_revision: str | None = "0002_ea_budgets"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ea_chart_preferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "granularity",
            sa.String(),
            nullable=False,
            server_default=sa.text("'monthly'"),
        ),
        sa.Column("selected_year", sa.String(), nullable=True),
        sa.Column("selected_month", sa.String(), nullable=True),
        sa.Column("selected_week", sa.String(), nullable=True),
        sa.Column("excluded_categories", sa.JSON(), nullable=False),
        sa.Column(
            "show_filter_panel",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.CheckConstraint(
            "granularity in ('daily','weekly','monthly','yearly')",
            name="ck_ea_chart_granularity",
        ),
    )


def downgrade() -> None:
    op.drop_table("ea_chart_preferences")
