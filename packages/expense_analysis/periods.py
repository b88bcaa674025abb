"""Reporting periods: preset date windows and period-over-period comparison.

Only transactions with a real (non-estimated) purchase date can fall inside a
window; the "all" preset returns the input unchanged.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import Literal

from .models import DateRange, Transaction
from .report import category_of, month_bounds, month_key

type PeriodKind = Literal["monthly", "weekly"]

_MONTH_NAMES = tuple(calendar.month_name)  # index 1..12
_MONTH_ABBR = (
    "", "Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


class PeriodPreset(StrEnum):
    ALL = "all"
    LAST_30 = "last30"
    LAST_90 = "last90"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    LAST_3_MONTHS = "last_3_months"
    LAST_6_MONTHS = "last_6_months"
    THIS_YEAR = "this_year"
    LAST_YEAR = "last_year"
    CUSTOM = "custom"


def _sub_months(d: date, months: int) -> date:
    # Clamp the day to the target month's length (Mar 31 - 1 month = Feb 28/29)
    total = d.year * 12 + (d.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    return date(year, month, min(d.day, calendar.monthrange(year, month)[1]))


def resolve_period(
    preset: PeriodPreset | str,
    *,
    today: date | None = None,
    custom_start: date | None = None,
    custom_end: date | None = None,
) -> DateRange | None:
    """Return the closed date window for ``preset``; ``None`` means unbounded.

    ``custom`` needs both ``custom_start`` and ``custom_end``; otherwise it is
    unbounded like ``all``.
    """

    preset = PeriodPreset(preset)
    now = today or date.today()
    match preset:
        case PeriodPreset.ALL:
            return None
        case PeriodPreset.LAST_30:
            return DateRange(now - timedelta(days=30), now)
        case PeriodPreset.LAST_90:
            return DateRange(now - timedelta(days=90), now)
        case PeriodPreset.THIS_MONTH:
            return month_bounds(now)
        case PeriodPreset.LAST_MONTH:
            return month_bounds(_sub_months(now, 1))
        case PeriodPreset.LAST_3_MONTHS:
            return DateRange(_sub_months(now, 3), now)
        case PeriodPreset.LAST_6_MONTHS:
            return DateRange(_sub_months(now, 6), now)
        case PeriodPreset.THIS_YEAR:
            return DateRange(date(now.year, 1, 1), date(now.year, 12, 31))
        case PeriodPreset.LAST_YEAR:
            return DateRange(date(now.year - 1, 1, 1), date(now.year - 1, 12, 31))
        case PeriodPreset.CUSTOM:
            if custom_start is None or custom_end is None:
                return None
            if custom_end < custom_start:
                raise ValueError("custom_end must not be before custom_start")
            return DateRange(custom_start, custom_end)


def filter_by_period(
    transactions: Iterable[Transaction], date_range: DateRange | None
) -> list[Transaction]:
    if date_range is None:
        return list(transactions)
    return [
        t
        for t in transactions
        if not t.purchase_date_estimated and date_range.contains(t.purchase_date)
    ]


# ---------------------------------------------------------------------------
# Period comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Period:
    key: str
    label: str
    start: date
    end: date


@dataclass(frozen=True, slots=True)
class CategoryComparison:
    category: str
    period1: float
    period2: float
    difference: float
    percent_change: float


@dataclass(frozen=True, slots=True)
class PeriodComparison:
    period1: Period
    period2: Period
    total_spent1: float
    total_spent2: float
    total_diff: float
    total_percent_change: float
    transaction_count1: int
    transaction_count2: int
    category_comparisons: tuple[CategoryComparison, ...]


def _period_for(d: date, kind: PeriodKind) -> Period:
    if kind == "monthly":
        bounds = month_bounds(d)
        return Period(month_key(d), f"{_MONTH_NAMES[d.month]} {d.year}", bounds.start, bounds.end)
    start = d - timedelta(days=d.weekday())
    end = start + timedelta(days=6)
    label = (
        f"Week {d.isocalendar().week} "
        f"({_MONTH_ABBR[start.month]} {start.day} - {_MONTH_ABBR[end.month]} {end.day}, {end.year})"
    )
    return Period(start.isoformat(), label, start, end)


def available_periods(
    transactions: Iterable[Transaction], kind: PeriodKind = "monthly"
) -> list[Period]:
    """Distinct months (or Monday-based weeks) present, oldest first."""

    seen: dict[str, Period] = {}
    for t in transactions:
        if t.purchase_date_estimated:
            continue
        p = _period_for(t.purchase_date, kind)
        seen.setdefault(p.key, p)
    return sorted(seen.values(), key=lambda p: p.start)


def available_months(transactions: Iterable[Transaction]) -> list[Period]:
    return available_periods(transactions, "monthly")


def _percent_change(before: float, after: float) -> float:
    if before > 0:
        return (after - before) / before * 100
    return 100.0 if after > 0 else 0.0


def _debits_by_category(
    txs: Sequence[Transaction], overrides: dict[str, str] | None
) -> dict[str, float]:
    out: dict[str, float] = {}
    for t in txs:
        if (t.debit or 0) > 0:
            cat = category_of(t, overrides)
            out[cat] = out.get(cat, 0.0) + (t.debit or 0.0)
    return out


def compare_periods(
    transactions: Iterable[Transaction],
    key1: str,
    key2: str,
    *,
    kind: PeriodKind = "monthly",
    overrides: dict[str, str] | None = None,
) -> PeriodComparison:
    """Compare spending between the periods identified by ``key1`` and ``key2``.

    Keys come from :func:`available_periods` (``YYYY-MM`` for months, the
    Monday ``YYYY-MM-DD`` for weeks). Category rows are ordered by the size
    of the absolute difference, largest first.

    Raises
    ------
    ValueError
        When a key does not name a period present in ``transactions``.
    """

    txs = list(transactions)
    periods = {p.key: p for p in available_periods(txs, kind)}
    missing = [k for k in (key1, key2) if k not in periods]
    if missing:
        raise ValueError(f"Unknown period(s): {', '.join(missing)}")
    p1, p2 = periods[key1], periods[key2]

    txs1 = filter_by_period(txs, DateRange(p1.start, p1.end))
    txs2 = filter_by_period(txs, DateRange(p2.start, p2.end))
    total1 = sum(t.debit or 0.0 for t in txs1)
    total2 = sum(t.debit or 0.0 for t in txs2)

    cats1 = _debits_by_category(txs1, overrides)
    cats2 = _debits_by_category(txs2, overrides)
    rows = []
    for cat in dict.fromkeys([*cats1, *cats2]):
        a, b = cats1.get(cat, 0.0), cats2.get(cat, 0.0)
        rows.append(CategoryComparison(cat, a, b, b - a, _percent_change(a, b)))
    rows.sort(key=lambda r: abs(r.difference), reverse=True)

    return PeriodComparison(
        period1=p1,
        period2=p2,
        total_spent1=total1,
        total_spent2=total2,
        total_diff=total2 - total1,
        total_percent_change=(total2 - total1) / total1 * 100 if total1 > 0 else 0.0,
        transaction_count1=len(txs1),
        transaction_count2=len(txs2),
        category_comparisons=tuple(rows),
    )


def compare_months(
    transactions: Iterable[Transaction],
    month1: str,
    month2: str,
    *,
    overrides: dict[str, str] | None = None,
) -> PeriodComparison:
    return compare_periods(transactions, month1, month2, kind="monthly", overrides=overrides)


__all__ = [
    "PeriodKind",
    "PeriodPreset",
    "resolve_period",
    "filter_by_period",
    "Period",
    "CategoryComparison",
    "PeriodComparison",
    "available_periods",
    "available_months",
    "compare_periods",
    "compare_months",
]
