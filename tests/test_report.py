# ruff: noqa: E501
from __future__ import annotations

from datetime import date, datetime, UTC

import pytest

from expense_analysis.duplicates import compute_fingerprint
from expense_analysis.ingest import parse_statement_text
from expense_analysis.models import Budget
from expense_analysis.report import (
    analyze_expenses,
    budget_tier,
    calculate_budget_status,
    month_bounds,
    month_label,
    render_report,
    summarize_investments,
)

from tests.helpers.transactions import make_tx

TODAY = date(2024, 7, 1)


def test_end_to_end_statement_report():
    text = (
        "sep=;\n"
        "Account number;Card number;Account/Cardholder;Purchase date;Booking text;Sector;Amount;"
        "Original currency;Rate;Currency;Debit;Credit;Booked\n"
        "1;****1;J;15.06.2024;Restaurant ABC;Restaurants;50.00;CHF;;CHF;50.00;;16.06.2024\n"
        "1;****1;J;16.06.2024;Grocery Store;Grocery stores;75.50;CHF;;CHF;75.50;;17.06.2024\n"
        "Total;;;;;;;125.50;;;;;\n"
    )
    report = analyze_expenses(parse_statement_text(text, today=TODAY), today=TODAY)

    assert report.total_spent == pytest.approx(125.5)
    assert report.total_income == 0
    assert report.net_balance == pytest.approx(-125.5)
    assert report.transaction_count == 2
    assert [(s.category, s.total_spent, s.count) for s in report.category_summaries] == [
        ("Groceries", pytest.approx(75.5), 1),
        ("Restaurants & Dining", pytest.approx(50.0), 1),
    ]
    assert sum(s.total_spent for s in report.category_summaries) == pytest.approx(report.total_spent)
    assert report.largest_category is report.category_summaries[0]
    assert [t.booking_text for t in report.top_expenses] == ["Grocery Store", "Restaurant ABC"]
    assert report.date_range.start == date(2024, 6, 15)
    assert report.date_range.end == date(2024, 6, 16)
    assert [m.month for m in report.monthly_analysis] == ["Jun 2024"]


def test_totals_and_counts():
    txs = [
        make_tx("Restaurant", sector="Restaurants", debit=100.0),
        make_tx("Shop", sector="Retail stores", debit=50.0),
        make_tx("Salary", debit=None, credit=200.0),
    ]
    report = analyze_expenses(txs, today=TODAY)
    assert report.total_spent == 150
    assert report.total_income == 200
    assert report.net_balance == 50
    assert report.transaction_count == 3


def test_category_grouping_percentages_and_order():
    txs = [
        make_tx("A", sector="Restaurants", debit=30.0),
        make_tx("B", sector="Restaurants", debit=50.0),
        make_tx("C", sector="Grocery stores", debit=100.0),
        make_tx("D", sector="Hotels", debit=20.0),
    ]
    report = analyze_expenses(txs, today=TODAY)
    cats = {s.category: s for s in report.category_summaries}

    assert [s.category for s in report.category_summaries] == [
        "Groceries",
        "Restaurants & Dining",
        "Travel & Accommodation",
    ]
    assert cats["Restaurants & Dining"].total_spent == 80
    assert cats["Restaurants & Dining"].count == 2
    assert cats["Restaurants & Dining"].average_transaction == 40
    assert cats["Groceries"].percentage == pytest.approx(50.0)
    assert sum(s.percentage for s in report.category_summaries) == pytest.approx(100.0)


def test_monthly_series_is_chronological():
    txs = [
        make_tx("July", debit=75.0, purchase_date=date(2024, 7, 2)),
        make_tx("June a", debit=100.0, purchase_date=date(2024, 6, 1)),
        make_tx("June b", debit=50.0, purchase_date=date(2024, 6, 20)),
        make_tx("June pay", debit=None, credit=10.0, purchase_date=date(2024, 6, 25)),
    ]
    months = analyze_expenses(txs, today=TODAY).monthly_analysis
    assert [m.month_key for m in months] == ["2024-06", "2024-07"]
    june, july = months
    assert june.total_spent == 150
    assert june.total_income == 10
    assert june.net_flow == -140
    assert june.transaction_count == 3
    assert july.total_spent == 75


def test_top_expenses_limited_to_ten():
    txs = [make_tx(f"T{i}", debit=float(10 * i)) for i in range(1, 16)]
    top = analyze_expenses(txs, today=TODAY).top_expenses
    assert len(top) == 10
    assert top[0].debit == 150
    assert top[9].debit == 60


def test_estimated_dates_count_in_totals_but_not_on_calendar():
    txs = [
        make_tx("Dated", debit=10.0, purchase_date=date(2024, 1, 15)),
        make_tx("Undated", debit=20.0, purchase_date=TODAY, estimated=True),
    ]
    report = analyze_expenses(txs, today=TODAY)
    assert report.total_spent == 30
    assert report.date_range.start == report.date_range.end == date(2024, 1, 15)
    assert [m.month_key for m in report.monthly_analysis] == ["2024-01"]


def test_overrides_are_applied_by_fingerprint():
    tx = make_tx("Restaurant", sector="Restaurants", debit=100.0)
    overrides = {compute_fingerprint(tx): "Entertainment"}
    report = analyze_expenses([tx], overrides, today=TODAY)
    assert report.category_summaries[0].category == "Entertainment"


def test_empty_input():
    report = analyze_expenses([], today=TODAY)
    assert report.total_spent == 0
    assert report.transaction_count == 0
    assert report.category_summaries == ()
    assert report.monthly_analysis == ()
    assert report.top_expenses == ()
    assert report.largest_category is None
    assert report.date_range.start == report.date_range.end == TODAY


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("percent", "tier"),
    [
        (0, "healthy"),
        (49.99, "healthy"),
        (50, "early"),
        (74.99, "early"),
        (75, "warning"),
        (100, "warning"),
        (100.01, "over"),
    ],
)
def test_budget_tier_boundaries(percent: float, tier: str):
    assert budget_tier(percent) == tier


def _budget(category: str, amount: float) -> Budget:
    return Budget(category=category, amount=amount, created_date=datetime(2024, 1, 1, tzinfo=UTC))


def test_budget_status_uses_only_the_selected_month():
    txs = [
        make_tx("Dinner", sector="Restaurants", debit=240.0, purchase_date=date(2024, 6, 10)),
        make_tx("Lunch", sector="Restaurants", debit=60.0, purchase_date=date(2024, 6, 30)),
        make_tx("May dinner", sector="Restaurants", debit=500.0, purchase_date=date(2024, 5, 31)),
        make_tx("Coop", sector="Grocery stores", debit=100.0, purchase_date=date(2024, 6, 3)),
        make_tx("Undated", sector="Grocery stores", debit=999.0, estimated=True, purchase_date=date(2024, 6, 3)),
    ]
    budgets = [
        _budget("Restaurants & Dining", 300.0),
        _budget("Groceries", 400.0),
        _budget("Shopping", 0.0),
    ]

    rows = calculate_budget_status(txs, budgets, date(2024, 6, 15))

    by_cat = {r.budget.category: r for r in rows}
    assert [r.budget.category for r in rows][0] == "Restaurants & Dining"
    assert by_cat["Restaurants & Dining"].spent == 300
    assert by_cat["Restaurants & Dining"].remaining == 0
    assert by_cat["Restaurants & Dining"].percent_used == 100
    assert by_cat["Restaurants & Dining"].status == "warning"
    assert by_cat["Groceries"].spent == 100
    assert by_cat["Groceries"].percent_used == 25
    assert by_cat["Groceries"].status == "healthy"
    assert by_cat["Shopping"].percent_used == 0
    assert by_cat["Shopping"].status == "healthy"


def test_budget_status_over_budget_has_negative_remaining():
    txs = [make_tx("Dinner", sector="Restaurants", debit=330.0, purchase_date=date(2024, 6, 10))]
    (row,) = calculate_budget_status(txs, [_budget("Restaurants & Dining", 300.0)], date(2024, 6, 1))
    assert row.status == "over"
    assert row.remaining == -30
    assert row.percent_used == pytest.approx(110.0)


def test_budget_status_without_budgets_is_empty():
    assert calculate_budget_status([make_tx()], []) == []


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


def test_month_helpers():
    assert month_label("2024-06") == "Jun 2024"
    bounds = month_bounds(date(2024, 2, 10))
    assert (bounds.start, bounds.end) == (date(2024, 2, 1), date(2024, 2, 29))


def test_summarize_investments():
    txs = [
        make_tx("COINBASE UK", debit=100.0, purchase_date=date(2024, 5, 2)),
        make_tx("Kraken Exchange", debit=50.0, purchase_date=date(2024, 6, 2)),
        make_tx("Coinbase fee", debit=5.0, purchase_date=date(2024, 6, 3)),
        make_tx("Coop", debit=30.0),
    ]
    summary = summarize_investments(txs)
    assert summary.total_invested == 155
    assert summary.transaction_count == 3
    assert [(p.platform, p.amount) for p in summary.platform_breakdown] == [
        ("Coinbase", 105.0),
        ("Kraken", 50.0),
    ]
    assert [m.month_key for m in summary.monthly_investments] == ["2024-05", "2024-06"]


def test_render_report_formats_swiss_amounts():
    report = analyze_expenses(
        [make_tx("Rent", sector="Misc", debit=1234.5, purchase_date=date(2024, 6, 1))], today=TODAY
    )
    text = render_report(report)
    assert "CHF 1'234.50" in text
    assert "Jun 2024" in text
    assert "Other" in text
