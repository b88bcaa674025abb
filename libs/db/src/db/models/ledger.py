from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# ea_analyses
# ---------------------------


class EaAnalysis(Base):
    """A named, saved transaction history.

    ``transactions`` stores the camelCase JSON payload of every transaction;
    reports are always recomputed from it and never stored.
    """

    __tablename__ = "ea_analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    transactions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


# ---------------------------
# ea_budgets
# ---------------------------


class EaBudget(Base):
    __tablename__ = "ea_budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # One budget per category; saving again updates the existing row
    category: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_ea_budget_amount"),)


# ---------------------------
# ea_chart_preferences (singleton row)
# ---------------------------


class EaChartPreferences(Base):
    __tablename__ = "ea_chart_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    granularity: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'monthly'")
    )
    selected_year: Mapped[str | None] = mapped_column(String, nullable=True)
    selected_month: Mapped[str | None] = mapped_column(String, nullable=True)
    selected_week: Mapped[str | None] = mapped_column(String, nullable=True)
    excluded_categories: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    show_filter_panel: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )

    __table_args__ = (
        CheckConstraint(
            "granularity in ('daily','weekly','monthly','yearly')",
            name="ck_ea_chart_granularity",
        ),
    )


# ---------------------------
# ea_category_overrides
# ---------------------------


class EaCategoryOverride(Base):
    """User category correction keyed by transaction fingerprint (SHA-256 hex)."""

    __tablename__ = "ea_category_overrides"

    fingerprint: Mapped[str] = mapped_column(CHAR(64), primary_key=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


__all__ = [
    "Base",
    "EaAnalysis",
    "EaBudget",
    "EaChartPreferences",
    "EaCategoryOverride",
]
