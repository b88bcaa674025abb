# ruff: noqa: I001
"""Monthly budgets, one per category.

Revision ID: 0002_ea_budgets
Revises: 0001_ea_analyses
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_ea_budgets"
down_revision: str | None = "0001_ea_analyses"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ea_budgets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("amount >= 0", name="ck_ea_budget_amount"),
        sa.UniqueConstraint("category", name="uq_ea_budgets_category"),
    )


def downgrade() -> None:
    op.drop_table("ea_budgets")
