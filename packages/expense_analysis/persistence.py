# ruff: noqa: I001
"""Persistence integration for expense_analysis.

``LedgerStore`` is the single repository the rest of the package talks to. It
wraps an explicitly constructed :class:`db.client.Database` (no module-level
handle) and covers four record kinds stored by ``libs/db``:

- saved analyses (named transaction histories),
- monthly budgets (one per category; saving again updates),
- chart preferences (a single row),
- category overrides keyed by transaction fingerprint.

Every public method runs in its own short transaction. ``replace_all`` is the
exception that matters: a restore clears and re-imports everything inside one
transaction so it either fully succeeds or leaves the store untouched.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from db.client import Database
from db.models.ledger import EaAnalysis, EaBudget, EaCategoryOverride, EaChartPreferences

from .categories import resolve_category, validate_budget_category
from .logging_setup import get_logger
from .models import (
    BackupData,
    Budget,
    ChartPreferences,
    ImportSummary,
    SavedAnalysis,
    StorageInfo,
    Transaction,
    transactions_from_payload,
    transactions_to_payload,
)

logger = get_logger(__name__)

_CHART_PREFS_ID = 1


def _to_decimal_2(raw: Any) -> Decimal:
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {raw!r}") from e
    if not d.is_finite():
        raise ValueError(f"Invalid amount: {raw!r}")
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _now() -> datetime:
    return datetime.now(UTC)


def _as_aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; values are always written as UTC
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def _budget_from_row(row: EaBudget) -> Budget:
    return Budget(
        id=row.id,
        category=row.category,
        amount=float(row.amount),
        created_date=_as_aware(row.created_date),
    )


def _analysis_from_row(row: EaAnalysis, *, with_transactions: bool = True) -> SavedAnalysis:
    return SavedAnalysis(
        id=row.id,
        name=row.name,
        file_name=row.file_name,
        upload_date=_as_aware(row.upload_date),
        transactions=tuple(transactions_from_payload(row.transactions))
        if with_transactions
        else (),
    )


def _prefs_from_row(row: EaChartPreferences) -> ChartPreferences:
    return ChartPreferences(
        id=row.id,
        granularity=row.granularity,  # type: ignore[arg-type]
        selected_year=row.selected_year,
        selected_month=row.selected_month,
        selected_week=row.selected_week,
        excluded_categories=list(row.excluded_categories or []),
        show_filter_panel=bool(row.show_filter_panel),
    )


def _canonical_budget_category(category: str) -> str:
    check = validate_budget_category(category)
    if not check.ok:
        raise ValueError(check.reason)
    canonical = resolve_category(category)
    assert canonical is not None  # validated above
    return canonical


class LedgerStore:
    """Repository over the ledger tables of ``database``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    @property
    def database(self) -> Database:
        return self._db

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    def save_analysis(
        self,
        name: str,
        file_name: str,
        transactions: Iterable[Transaction],
        *,
        upload_date: datetime | None = None,
    ) -> int:
        """Persist a named transaction history and return its id."""

        name = name.strip()
        if not name:
            raise ValueError("Analysis name must not be empty")
        payload = transactions_to_payload(list(transactions))
        with self._db.session_scope() as s:
            row = EaAnalysis(
                name=name,
                file_name=file_name,
                upload_date=upload_date or _now(),
                transactions=payload,
            )
            s.add(row)
            s.flush()
            logger.info("store:save_analysis id=%d transactions=%d", row.id, len(payload))
            return row.id

    def list_analyses(self, *, with_transactions: bool = True) -> list[SavedAnalysis]:
        """All saved analyses, newest upload first."""

        with self._db.session_scope() as s:
            rows = s.scalars(
                select(EaAnalysis).order_by(EaAnalysis.upload_date.desc(), EaAnalysis.id.desc())
            ).all()
            return [_analysis_from_row(r, with_transactions=with_transactions) for r in rows]

    def get_analysis(self, analysis_id: int) -> SavedAnalysis | None:
        with self._db.session_scope() as s:
            row = s.get(EaAnalysis, analysis_id)
            return _analysis_from_row(row) if row is not None else None

    def update_analysis_transactions(
        self, analysis_id: int, transactions: Iterable[Transaction]
    ) -> bool:
        """Replace the stored history of an analysis (after a merge)."""

        payload = transactions_to_payload(list(transactions))
        with self._db.session_scope() as s:
            row = s.get(EaAnalysis, analysis_id)
            if row is None:
                return False
            row.transactions = payload
            return True

    def rename_analysis(self, analysis_id: int, new_name: str) -> bool:
        new_name = new_name.strip()
        if not new_name:
            raise ValueError("Analysis name must not be empty")
        with self._db.session_scope() as s:
            row = s.get(EaAnalysis, analysis_id)
            if row is None:
                return False
            row.name = new_name
            return True

    def delete_analysis(self, analysis_id: int) -> bool:
        with self._db.session_scope() as s:
            result = s.execute(delete(EaAnalysis).where(EaAnalysis.id == analysis_id))
            return (result.rowcount or 0) > 0

    def clear_all_analyses(self) -> int:
        with self._db.session_scope() as s:
            result = s.execute(delete(EaAnalysis))
            return result.rowcount or 0

    def storage_info(self) -> StorageInfo:
        """Count of saved analyses and a human-readable storage size."""

        with self._db.session_scope() as s:
            count = s.execute(select(func.count()).select_from(EaAnalysis)).scalar_one()

        url = self._db.engine.url
        size = "Unknown"
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            path = Path(url.database)
            if path.is_file():
                size = f"{path.stat().st_size / 1024:.1f} KB"
        return StorageInfo(count=int(count), estimated_size=size)

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    def save_budget(self, category: str, amount: float) -> int:
        """Create or update the budget for ``category``; return its id.

        Raises ``ValueError`` for unknown or non-budgetable categories and
        negative amounts.
        """

        canonical = _canonical_budget_category(category)
        value = _to_decimal_2(amount)
        if value < 0:
            raise ValueError("Budget amount must not be negative")
        with self._db.session_scope() as s:
            row = s.scalars(select(EaBudget).where(EaBudget.category == canonical)).first()
            if row is None:
                row = EaBudget(category=canonical, amount=value, created_date=_now())
                s.add(row)
            else:
                row.amount = value
                row.updated_at = _now()
            s.flush()
            logger.info("store:save_budget category=%s amount=%s", canonical, value)
            return row.id

    def list_budgets(self) -> list[Budget]:
        with self._db.session_scope() as s:
            rows = s.scalars(select(EaBudget).order_by(EaBudget.category)).all()
            return [_budget_from_row(r) for r in rows]

    def get_budget(self, category: str) -> Budget | None:
        canonical = resolve_category(category)
        if canonical is None:
            return None
        with self._db.session_scope() as s:
            row = s.scalars(select(EaBudget).where(EaBudget.category == canonical)).first()
            return _budget_from_row(row) if row is not None else None

    def update_budget(self, budget_id: int, amount: float) -> bool:
        value = _to_decimal_2(amount)
        if value < 0:
            raise ValueError("Budget amount must not be negative")
        with self._db.session_scope() as s:
            row = s.get(EaBudget, budget_id)
            if row is None:
                return False
            row.amount = value
            row.updated_at = _now()
            return True

    def delete_budget(self, budget_id: int) -> bool:
        with self._db.session_scope() as s:
            result = s.execute(delete(EaBudget).where(EaBudget.id == budget_id))
            return (result.rowcount or 0) > 0

    def delete_budget_by_category(self, category: str) -> bool:
        canonical = resolve_category(category)
        if canonical is None:
            return False
        with self._db.session_scope() as s:
            result = s.execute(delete(EaBudget).where(EaBudget.category == canonical))
            return (result.rowcount or 0) > 0

    # ------------------------------------------------------------------
    # Chart preferences (singleton)
    # ------------------------------------------------------------------

    def save_chart_preferences(self, prefs: ChartPreferences) -> None:
        with self._db.session_scope() as s:
            row = s.get(EaChartPreferences, _CHART_PREFS_ID)
            if row is None:
                row = EaChartPreferences(id=_CHART_PREFS_ID)
                s.add(row)
            row.granularity = prefs.granularity
            row.selected_year = prefs.selected_year
            row.selected_month = prefs.selected_month
            row.selected_week = prefs.selected_week
            row.excluded_categories = list(prefs.excluded_categories)
            row.show_filter_panel = prefs.show_filter_panel

    def get_chart_preferences(self) -> ChartPreferences | None:
        with self._db.session_scope() as s:
            row = s.get(EaChartPreferences, _CHART_PREFS_ID)
            return _prefs_from_row(row) if row is not None else None

    def clear_chart_preferences(self) -> None:
        with self._db.session_scope() as s:
            s.execute(delete(EaChartPreferences))

    # ------------------------------------------------------------------
    # Category overrides
    # ------------------------------------------------------------------

    def set_category_override(self, fingerprint: str, category: str) -> str:
        """Record ``category`` for the transaction with ``fingerprint``.

        Returns the canonical category label. Raises ``ValueError`` for
        labels outside the vocabulary.
        """

        canonical = resolve_category(category)
        if canonical is None:
            raise ValueError(f"Unknown category: {category!r}")
        with self._db.session_scope() as s:
            row = s.get(EaCategoryOverride, fingerprint)
            if row is None:
                s.add(EaCategoryOverride(fingerprint=fingerprint, category=canonical))
            else:
                row.category = canonical
                row.updated_at = _now()
        return canonical

    def clear_category_override(self, fingerprint: str) -> bool:
        with self._db.session_scope() as s:
            result = s.execute(
                delete(EaCategoryOverride).where(EaCategoryOverride.fingerprint == fingerprint)
            )
            return (result.rowcount or 0) > 0

    def load_category_overrides(self) -> dict[str, str]:
        with self._db.session_scope() as s:
            rows = s.execute(
                select(EaCategoryOverride.fingerprint, EaCategoryOverride.category)
            ).all()
            return {fp: cat for fp, cat in rows}

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def replace_all(self, backup: BackupData) -> ImportSummary:
        """Clear every table and import ``backup`` in one transaction."""

        with self._db.session_scope() as s:
            _clear_everything(s)
            for a in backup.analyses:
                s.add(
                    EaAnalysis(
                        name=a.name,
                        file_name=a.file_name,
                        upload_date=_as_aware(a.upload_date),
                        transactions=[
                            t.model_dump(mode="json", by_alias=True) for t in a.transactions
                        ],
                    )
                )
            for b in backup.budgets:
                s.add(
                    EaBudget(
                        category=b.category,
                        amount=_to_decimal_2(b.amount),
                        created_date=_as_aware(b.created_date),
                    )
                )
            if backup.chart_preferences is not None:
                p = backup.chart_preferences
                s.add(
                    EaChartPreferences(
                        id=_CHART_PREFS_ID,
                        granularity=p.granularity,
                        selected_year=p.selected_year,
                        selected_month=p.selected_month,
                        selected_week=p.selected_week,
                        excluded_categories=list(p.excluded_categories),
                        show_filter_panel=p.show_filter_panel,
                    )
                )
            overrides = _dedupe_overrides(
                (o.fingerprint, o.category) for o in backup.category_overrides
            )
            for fp, cat in overrides.items():
                s.add(EaCategoryOverride(fingerprint=fp, category=cat))

        summary = ImportSummary(
            analyses_count=len(backup.analyses),
            budgets_count=len(backup.budgets),
            has_chart_preferences=backup.chart_preferences is not None,
            overrides_count=len(overrides),
        )
        logger.info(
            "store:replace_all analyses=%d budgets=%d prefs=%s overrides=%d",
            summary.analyses_count,
            summary.budgets_count,
            summary.has_chart_preferences,
            summary.overrides_count,
        )
        return summary


def _clear_everything(session: Session) -> None:
    for model in (EaAnalysis, EaBudget, EaChartPreferences, EaCategoryOverride):
        session.execute(delete(model))
    session.flush()


def _dedupe_overrides(pairs: Iterable[tuple[str, str]]) -> Mapping[str, str]:
    # Last one wins for repeated fingerprints
    return dict(pairs)


__all__ = ["LedgerStore"]
