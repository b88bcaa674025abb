"""Report aggregation: totals, category breakdown, monthly series, budgets.

Every function here takes a snapshot of transactions and returns a new,
immutable result; nothing is cached or patched in place. Category overrides
are keyed by transaction fingerprint (see
:func:`expense_analysis.duplicates.compute_fingerprint`), so re-sorting or
filtering a list never shifts an override onto another row.

Rows whose purchase date had to be estimated by the parser still count
towards totals but are left out of anything positioned on the calendar: the
date range, the monthly series and budget windows.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date

from .categorization import categorize_transaction
from .duplicates import compute_fingerprint
from .logging_setup import get_logger
from .models import (
    Budget,
    BudgetStatus,
    BudgetWithSpending,
    CategorySummary,
    DateRange,
    ExpenseReport,
    MonthlyAnalysis,
    Transaction,
)

logger = get_logger(__name__)

TOP_EXPENSES_LIMIT = 10

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_label(key: str) -> str:
    """``"2024-06"`` -> ``"Jun 2024"``."""

    year, month = key.split("-")
    return f"{_MONTH_ABBR[int(month) - 1]} {year}"


def month_bounds(d: date) -> DateRange:
    """First and last calendar day of the month containing ``d``."""

    last = calendar.monthrange(d.year, d.month)[1]
    return DateRange(date(d.year, d.month, 1), date(d.year, d.month, last))


def _spent(tx: Transaction) -> float:
    return tx.debit or 0.0


def _received(tx: Transaction) -> float:
    return tx.credit or 0.0


def category_of(tx: Transaction, overrides: Mapping[str, str] | None = None) -> str:
    """Categorize ``tx`` honoring a fingerprint-keyed override map."""

    override = overrides.get(compute_fingerprint(tx)) if overrides else None
    return categorize_transaction(tx, override)


def _dated(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if not t.purchase_date_estimated]


# ---------------------------------------------------------------------------
# Expense report
# ---------------------------------------------------------------------------


def _category_summaries(
    expenses: Sequence[Transaction], overrides: Mapping[str, str] | None
) -> tuple[CategorySummary, ...]:
    groups: dict[str, list[Transaction]] = {}
    for tx in expenses:
        groups.setdefault(category_of(tx, overrides), []).append(tx)

    totals = {cat: sum(_spent(t) for t in txs) for cat, txs in groups.items()}
    grand = sum(totals.values())

    summaries = [
        CategorySummary(
            category=cat,
            total_spent=totals[cat],
            count=len(txs),
            percentage=(totals[cat] / grand * 100) if grand > 0 else 0.0,
            average_transaction=totals[cat] / len(txs),
            transactions=tuple(txs),
        )
        for cat, txs in groups.items()
    ]
    summaries.sort(key=lambda s: s.total_spent, reverse=True)
    return tuple(summaries)


def _monthly_series(transactions: Iterable[Transaction]) -> tuple[MonthlyAnalysis, ...]:
    buckets: dict[str, list[Transaction]] = {}
    for tx in _dated(transactions):
        buckets.setdefault(month_key(tx.purchase_date), []).append(tx)

    out: list[MonthlyAnalysis] = []
    for key in sorted(buckets):
        txs = buckets[key]
        spent = sum(_spent(t) for t in txs if _spent(t) > 0)
        income = sum(_received(t) for t in txs if _received(t) > 0)
        out.append(
            MonthlyAnalysis(
                month=month_label(key),
                month_key=key,
                total_spent=spent,
                total_income=income,
                net_flow=income - spent,
                transaction_count=len(txs),
            )
        )
    return tuple(out)


def _date_range(transactions: Iterable[Transaction], today: date) -> DateRange:
    dates = sorted(t.purchase_date for t in _dated(transactions))
    if not dates:
        return DateRange(today, today)
    return DateRange(dates[0], dates[-1])


def analyze_expenses(
    transactions: Iterable[Transaction],
    overrides: Mapping[str, str] | None = None,
    *,
    today: date | None = None,
) -> ExpenseReport:
    """Reduce ``transactions`` into an :class:`ExpenseReport`.

    Parameters
    ----------
    transactions:
        Snapshot to aggregate; an empty input yields zero totals and empty
        collections.
    overrides:
        Optional ``fingerprint -> category`` corrections.
    today:
        Date used for an empty date range; defaults to ``date.today()``.

    Notes
    -----
    Category percentages are relative to the sum of the category totals, so
    they add up to 100 across the listed categories.
    """

    txs = list(transactions)
    expenses = [t for t in txs if _spent(t) > 0]
    income = [t for t in txs if _received(t) > 0]

    total_spent = sum(_spent(t) for t in expenses)
    total_income = sum(_received(t) for t in income)
    summaries = _category_summaries(expenses, overrides)
    # sorted() is stable: equal debits keep their input order
    top = sorted(expenses, key=_spent, reverse=True)[:TOP_EXPENSES_LIMIT]

    report = ExpenseReport(
        total_spent=total_spent,
        total_income=total_income,
        net_balance=total_income - total_spent,
        transaction_count=len(txs),
        date_range=_date_range(txs, today or date.today()),
        category_summaries=summaries,
        monthly_analysis=_monthly_series(txs),
        top_expenses=tuple(top),
        largest_category=summaries[0] if summaries else None,
    )
    logger.debug(
        "analyze_expenses:done transactions=%d categories=%d months=%d",
        report.transaction_count,
        len(report.category_summaries),
        len(report.monthly_analysis),
    )
    return report


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def budget_tier(percent_used: float) -> BudgetStatus:
    """Tier for ``percent_used``; lower bounds are inclusive, ``over`` is > 100."""

    if percent_used > 100:
        return "over"
    if percent_used >= 75:
        return "warning"
    if percent_used >= 50:
        return "early"
    return "healthy"


def calculate_budget_status(
    transactions: Iterable[Transaction],
    budgets: Sequence[Budget],
    month: date | None = None,
    overrides: Mapping[str, str] | None = None,
) -> list[BudgetWithSpending]:
    """Evaluate ``budgets`` against spending in the month containing ``month``.

    ``month`` defaults to today. Results are sorted by percent used, most
    at-risk first. No budgets means an empty list.
    """

    if not budgets:
        return []

    window = month_bounds(month or date.today())
    spending: dict[str, float] = {}
    for tx in _dated(transactions):
        if _spent(tx) > 0 and window.contains(tx.purchase_date):
            cat = category_of(tx, overrides)
            spending[cat] = spending.get(cat, 0.0) + _spent(tx)

    out: list[BudgetWithSpending] = []
    for budget in budgets:
        spent = spending.get(budget.category, 0.0)
        percent = (spent / budget.amount * 100) if budget.amount > 0 else 0.0
        out.append(
            BudgetWithSpending(
                budget=budget,
                spent=spent,
                remaining=budget.amount - spent,
                percent_used=percent,
                status=budget_tier(percent),
            )
        )
    out.sort(key=lambda b: b.percent_used, reverse=True)
    return out


# ---------------------------------------------------------------------------
# Crypto / investment purchases
# ---------------------------------------------------------------------------

INVESTMENT_MARKERS: tuple[str, ...] = (
    "COINBASE",
    "KRAKEN",
    "BINANCE",
    "CRYPTO",
    "BITCOIN",
    "ETHEREUM",
)
_PLATFORMS: tuple[tuple[str, str], ...] = (
    ("COINBASE", "Coinbase"),
    ("KRAKEN", "Kraken"),
    ("BINANCE", "Binance"),
)


@dataclass(frozen=True, slots=True)
class PlatformTotal:
    platform: str
    amount: float


@dataclass(frozen=True, slots=True)
class MonthlyAmount:
    month: str
    month_key: str
    amount: float


@dataclass(frozen=True, slots=True)
class InvestmentSummary:
    total_invested: float
    transaction_count: int
    platform_breakdown: tuple[PlatformTotal, ...]
    monthly_investments: tuple[MonthlyAmount, ...]


def _platform(upper_text: str) -> str:
    for marker, name in _PLATFORMS:
        if marker in upper_text:
            return name
    return "Other"


def summarize_investments(transactions: Iterable[Transaction]) -> InvestmentSummary:
    """Summarize debits to crypto exchanges and crypto-related purchases."""

    investments = [
        t
        for t in transactions
        if _spent(t) > 0 and any(m in t.booking_text.upper() for m in INVESTMENT_MARKERS)
    ]

    by_platform: dict[str, float] = {}
    for t in investments:
        name = _platform(t.booking_text.upper())
        by_platform[name] = by_platform.get(name, 0.0) + _spent(t)

    by_month: dict[str, float] = {}
    for t in _dated(investments):
        key = month_key(t.purchase_date)
        by_month[key] = by_month.get(key, 0.0) + _spent(t)

    return InvestmentSummary(
        total_invested=sum(_spent(t) for t in investments),
        transaction_count=len(investments),
        platform_breakdown=tuple(
            PlatformTotal(p, a)
            for p, a in sorted(by_platform.items(), key=lambda kv: kv[1], reverse=True)
        ),
        monthly_investments=tuple(
            MonthlyAmount(month_label(k), k, by_month[k]) for k in sorted(by_month)
        ),
    )


# ---------------------------------------------------------------------------
# Plain-text rendering
# ---------------------------------------------------------------------------


def _money(amount: float, currency: str) -> str:
    return f"{currency} {amount:,.2f}".replace(",", "'")


def render_report(report: ExpenseReport, *, currency: str = "CHF") -> str:
    """Render ``report`` as a compact plain-text summary for terminals."""

    lines = [
        f"Period: {report.date_range.start.isoformat()} .. {report.date_range.end.isoformat()}",
        f"Transactions: {report.transaction_count}",
        f"Total spent:  {_money(report.total_spent, currency)}",
        f"Total income: {_money(report.total_income, currency)}",
        f"Net balance:  {_money(report.net_balance, currency)}",
    ]

    if report.category_summaries:
        lines += ["", "By category:"]
        width = max(len(s.category) for s in report.category_summaries)
        for s in report.category_summaries:
            lines.append(
                f"  {s.category:<{width}}  {_money(s.total_spent, currency):>16}"
                f"  {s.percentage:5.1f}%  ({s.count})"
            )

    if report.monthly_analysis:
        lines += ["", "By month:"]
        for m in report.monthly_analysis:
            lines.append(
                f"  {m.month}  spent {_money(m.total_spent, currency)}"
                f"  income {_money(m.total_income, currency)}"
                f"  net {_money(m.net_flow, currency)}"
            )

    if report.top_expenses:
        lines += ["", "Top expenses:"]
        for t in report.top_expenses:
            lines.append(
                f"  {t.purchase_date.isoformat()}  "
                f"{_money(_spent(t), currency):>16}  {t.booking_text}"
            )

    return "\n".join(lines)


__all__ = [
    "TOP_EXPENSES_LIMIT",
    "INVESTMENT_MARKERS",
    "month_key",
    "month_label",
    "month_bounds",
    "category_of",
    "analyze_expenses",
    "budget_tier",
    "calculate_budget_status",
    "PlatformTotal",
    "MonthlyAmount",
    "InvestmentSummary",
    "summarize_investments",
    "render_report",
]
