"""Data models and type aliases for ``expense_analysis``.

Core records (``Transaction`` and everything derived from it) are frozen
dataclasses: they are value objects, never patched in place, and every report
is recomputed from a snapshot. JSON-facing shapes (backup payloads, the
encrypted envelope, chart preferences) are pydantic models so that restore
paths get structural validation for free.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .config import get_timezone

# ---------------------------------------------------------------------------
# Core record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Transaction:
    """One statement row after normalization.

    Amount fields are non-negative by convention. ``debit`` and ``credit`` are
    independent and nullable; after parser inference at most one of them is
    usually populated.

    ``purchase_date_estimated`` is ``True`` when the source date could not be
    parsed and the parser substituted today's date. Aggregations that depend
    on calendar position (date range, monthly series, budget windows, period
    filters) skip such rows; totals still include them.

    ``manual_category`` carries a user correction and always wins during
    categorization.
    """

    account_number: str
    card_number: str
    account_holder: str
    purchase_date: date
    booking_text: str
    sector: str
    amount: float
    original_currency: str
    rate: float | None
    currency: str
    debit: float | None
    credit: float | None
    booked_date: date
    purchase_date_estimated: bool = False
    manual_category: str | None = None

    def with_category(self, category: str | None) -> Transaction:
        """Return a copy carrying ``category`` as manual override."""

        return dataclasses.replace(self, manual_category=category)


# ---------------------------------------------------------------------------
# Report shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DateRange:
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


@dataclass(frozen=True, slots=True)
class CategorySummary:
    """Spending of one category relative to the set it was computed over."""

    category: str
    total_spent: float
    count: int
    percentage: float
    average_transaction: float
    transactions: tuple[Transaction, ...]


@dataclass(frozen=True, slots=True)
class MonthlyAnalysis:
    month: str  # display label, e.g. "Jun 2024"
    month_key: str  # YYYY-MM, sorts chronologically
    total_spent: float
    total_income: float
    net_flow: float
    transaction_count: int


@dataclass(frozen=True, slots=True)
class ExpenseReport:
    total_spent: float
    total_income: float
    net_balance: float
    transaction_count: int
    date_range: DateRange
    category_summaries: tuple[CategorySummary, ...]
    monthly_analysis: tuple[MonthlyAnalysis, ...]
    top_expenses: tuple[Transaction, ...]
    largest_category: CategorySummary | None


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

type BudgetStatus = Literal["healthy", "early", "warning", "over"]


@dataclass(frozen=True, slots=True)
class Budget:
    """User-declared monthly spending limit for one category."""

    category: str
    amount: float
    created_date: datetime
    id: int | None = None


@dataclass(frozen=True, slots=True)
class BudgetWithSpending:
    budget: Budget
    spent: float
    remaining: float
    percent_used: float
    status: BudgetStatus


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MergeStats:
    original_count: int
    new_count: int
    merged_count: int
    duplicates_found: int


@dataclass(frozen=True, slots=True)
class MergeResult:
    merged: tuple[Transaction, ...]
    new_transactions: tuple[Transaction, ...]
    duplicates: tuple[Transaction, ...]
    stats: MergeStats


# ---------------------------------------------------------------------------
# Saved state
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SavedAnalysis:
    """A named transaction history persisted by the store."""

    id: int
    name: str
    file_name: str
    upload_date: datetime
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class StorageInfo:
    count: int
    estimated_size: str


@dataclass(frozen=True, slots=True)
class ImportSummary:
    analyses_count: int
    budgets_count: int
    has_chart_preferences: bool
    overrides_count: int = 0


# ---------------------------------------------------------------------------
# JSON DTOs (backup payload, envelope, preferences)
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    """Base for JSON payloads using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


Granularity = Literal["daily", "weekly", "monthly", "yearly"]


class ChartPreferences(_CamelModel):
    """Singleton record of chart view settings (opaque to the core)."""

    id: int | None = None
    granularity: Granularity = "monthly"
    selected_year: str | None = None
    selected_month: str | None = None
    selected_week: str | None = None
    excluded_categories: list[str] = []
    show_filter_panel: bool = False


def local_day(moment: datetime) -> date:
    """Calendar day of ``moment``; aware values are read in the statement zone."""

    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(get_timezone()).date()


def _date_part(value: Any) -> Any:
    # "2024-06-15T22:00:00.000Z" is midnight of 16 June in Zurich
    if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value[:10]
    if isinstance(value, datetime):
        return local_day(value)
    return value


class TransactionPayload(_CamelModel):
    account_number: str = ""
    card_number: str = ""
    account_holder: str = ""
    purchase_date: date
    booking_text: str = ""
    sector: str = ""
    amount: float = 0.0
    original_currency: str = ""
    rate: float | None = None
    currency: str = ""
    debit: float | None = None
    credit: float | None = None
    booked_date: date
    purchase_date_estimated: bool = False
    manual_category: str | None = None

    @field_validator("purchase_date", "booked_date", mode="before")
    @classmethod
    def _calendar_day(cls, v: Any) -> Any:
        return _date_part(v)

    @classmethod
    def from_transaction(cls, tx: Transaction) -> TransactionPayload:
        return cls(**{f.name: getattr(tx, f.name) for f in dataclasses.fields(Transaction)})

    def to_transaction(self) -> Transaction:
        return Transaction(**self.model_dump(by_alias=False))


class AnalysisPayload(_CamelModel):
    id: int | None = None
    name: str
    file_name: str
    upload_date: datetime
    transactions: list[TransactionPayload]


class BudgetPayload(_CamelModel):
    id: int | None = None
    category: str
    amount: float
    created_date: datetime


class CategoryOverridePayload(_CamelModel):
    fingerprint: str
    category: str


class BackupData(_CamelModel):
    """Decrypted backup payload.

    ``version``, ``exportDate``, ``analyses``, ``budgets`` and
    ``chartPreferences`` (object or null) are required keys.
    """

    version: int
    export_date: str
    analyses: list[AnalysisPayload]
    budgets: list[BudgetPayload]
    chart_preferences: ChartPreferences | None
    category_overrides: list[CategoryOverridePayload] = []


class EncryptedEnvelope(BaseModel):
    """Versioned container for an encrypted backup; all binary fields base64."""

    model_config = ConfigDict(strict=True, extra="ignore")

    version: int
    salt: str
    iv: str
    data: str
    checksum: str


def transactions_to_payload(transactions: Sequence[Transaction]) -> list[dict[str, Any]]:
    """Serialize transactions to JSON-ready dicts (camelCase keys)."""

    return [
        TransactionPayload.from_transaction(tx).model_dump(mode="json", by_alias=True)
        for tx in transactions
    ]


def transactions_from_payload(items: Iterable[Mapping[str, Any]]) -> list[Transaction]:
    return [TransactionPayload.model_validate(item).to_transaction() for item in items]


__all__ = [
    "Transaction",
    "local_day",
    "DateRange",
    "CategorySummary",
    "MonthlyAnalysis",
    "ExpenseReport",
    "BudgetStatus",
    "Budget",
    "BudgetWithSpending",
    "MergeStats",
    "MergeResult",
    "SavedAnalysis",
    "StorageInfo",
    "ImportSummary",
    "Granularity",
    "ChartPreferences",
    "TransactionPayload",
    "AnalysisPayload",
    "BudgetPayload",
    "CategoryOverridePayload",
    "BackupData",
    "EncryptedEnvelope",
    "transactions_to_payload",
    "transactions_from_payload",
]
