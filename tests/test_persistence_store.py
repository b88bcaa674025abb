from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, date, datetime
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError

from expense_analysis.models import (
    AnalysisPayload,
    BackupData,
    BudgetPayload,
    CategoryOverridePayload,
    ChartPreferences,
    TransactionPayload,
)
from expense_analysis.persistence import LedgerStore

from tests.helpers.db import open_database
from tests.helpers.transactions import make_tx


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[LedgerStore]:
    database = open_database(tmp_path / "ledger.sqlite3")
    try:
        yield LedgerStore(database)
    finally:
        database.dispose()


# ---------------------------------------------------------------------------
# Analyses
# ---------------------------------------------------------------------------


def test_save_and_get_analysis_roundtrips_transactions(store: LedgerStore):
    txs = [
        make_tx("Coop", sector="Grocery stores", debit=12.5, purchase_date=date(2024, 6, 1)),
        make_tx("Salary", debit=None, credit=5000.0, purchase_date=date(2024, 6, 25)),
        make_tx("Guess", estimated=True, manual_category="Education"),
    ]
    analysis_id = store.save_analysis("June", "june.csv", txs)

    saved = store.get_analysis(analysis_id)
    assert saved is not None
    assert saved.name == "June"
    assert saved.file_name == "june.csv"
    assert saved.upload_date.tzinfo is not None
    assert list(saved.transactions) == txs


def test_list_analyses_newest_first(store: LedgerStore):
    older = store.save_analysis("old", "a.csv", [], upload_date=datetime(2024, 1, 1, tzinfo=UTC))
    newer = store.save_analysis("new", "b.csv", [], upload_date=datetime(2024, 2, 1, tzinfo=UTC))
    assert [a.id for a in store.list_analyses()] == [newer, older]


def test_rename_update_delete_and_clear(store: LedgerStore):
    analysis_id = store.save_analysis("draft", "a.csv", [make_tx("A")])

    assert store.rename_analysis(analysis_id, "  final  ") is True
    assert store.get_analysis(analysis_id).name == "final"
    with pytest.raises(ValueError):
        store.rename_analysis(analysis_id, "   ")
    assert store.rename_analysis(9999, "x") is False

    assert store.update_analysis_transactions(analysis_id, [make_tx("A"), make_tx("B")])
    assert len(store.get_analysis(analysis_id).transactions) == 2

    assert store.delete_analysis(analysis_id) is True
    assert store.delete_analysis(analysis_id) is False
    assert store.get_analysis(analysis_id) is None

    store.save_analysis("x", "x.csv", [])
    store.save_analysis("y", "y.csv", [])
    assert store.clear_all_analyses() == 2
    assert store.list_analyses() == []


def test_storage_info_reports_count_and_size(store: LedgerStore):
    store.save_analysis("x", "x.csv", [make_tx()])
    info = store.storage_info()
    assert info.count == 1
    assert info.estimated_size.endswith(" KB")


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------


def test_save_budget_upserts_by_category(store: LedgerStore):
    first = store.save_budget("restaurants & dining", 300)
    second = store.save_budget("Restaurants & Dining", 350.555)
    assert first == second

    (budget,) = store.list_budgets()
    assert budget.category == "Restaurants & Dining"
    assert budget.amount == pytest.approx(350.56)
    assert store.get_budget("RESTAURANTS & DINING") == budget


@pytest.mark.parametrize("category", ["Income", "Other", "Not A Category"])
def test_save_budget_rejects_non_budgetable_categories(store: LedgerStore, category: str):
    with pytest.raises(ValueError):
        store.save_budget(category, 100)


def test_save_budget_rejects_negative_amounts(store: LedgerStore):
    with pytest.raises(ValueError):
        store.save_budget("Groceries", -1)


def test_update_and_delete_budgets(store: LedgerStore):
    budget_id = store.save_budget("Groceries", 400)
    assert store.update_budget(budget_id, 450) is True
    assert store.get_budget("Groceries").amount == 450
    assert store.update_budget(9999, 1) is False

    store.save_budget("Shopping", 100)
    assert store.delete_budget_by_category("shopping") is True
    assert store.delete_budget_by_category("shopping") is False
    assert store.delete_budget(budget_id) is True
    assert store.list_budgets() == []


# ---------------------------------------------------------------------------
# Chart preferences and overrides
# ---------------------------------------------------------------------------


def test_chart_preferences_singleton(store: LedgerStore):
    assert store.get_chart_preferences() is None

    store.save_chart_preferences(ChartPreferences(granularity="weekly", selected_year="2024"))
    store.save_chart_preferences(
        ChartPreferences(granularity="yearly", excluded_categories=["Income"], show_filter_panel=True)
    )
    prefs = store.get_chart_preferences()
    assert prefs is not None
    assert prefs.id == 1
    assert prefs.granularity == "yearly"
    assert prefs.selected_year is None
    assert prefs.excluded_categories == ["Income"]
    assert prefs.show_filter_panel is True

    store.clear_chart_preferences()
    assert store.get_chart_preferences() is None


def test_category_overrides(store: LedgerStore):
    fp = "a" * 64
    assert store.set_category_override(fp, "groceries") == "Groceries"
    assert store.set_category_override(fp, "Shopping") == "Shopping"
    assert store.load_category_overrides() == {fp: "Shopping"}

    with pytest.raises(ValueError):
        store.set_category_override(fp, "Nonsense")

    assert store.clear_category_override(fp) is True
    assert store.clear_category_override(fp) is False
    assert store.load_category_overrides() == {}


# ---------------------------------------------------------------------------
# replace_all
# ---------------------------------------------------------------------------


def _backup(**overrides) -> BackupData:
    tx = TransactionPayload.from_transaction(make_tx("Coop", debit=5.0))
    data = {
        "version": 1,
        "export_date": "2024-07-01T00:00:00+00:00",
        "analyses": [
            AnalysisPayload(
                name="Imported",
                file_name="imported.csv",
                upload_date=datetime(2024, 7, 1, tzinfo=UTC),
                transactions=[tx],
            )
        ],
        "budgets": [
            BudgetPayload(category="Groceries", amount=400, created_date=datetime(2024, 1, 1, tzinfo=UTC))
        ],
        "chart_preferences": ChartPreferences(granularity="daily"),
        "category_overrides": [CategoryOverridePayload(fingerprint="b" * 64, category="Education")],
    }
    data.update(overrides)
    return BackupData(**data)


def test_replace_all_clears_and_imports(store: LedgerStore):
    store.save_analysis("local", "local.csv", [make_tx()])
    store.save_budget("Shopping", 50)
    store.set_category_override("c" * 64, "Fuel")

    summary = store.replace_all(_backup())

    assert summary.analyses_count == 1
    assert summary.budgets_count == 1
    assert summary.has_chart_preferences is True
    assert summary.overrides_count == 1
    assert [a.name for a in store.list_analyses()] == ["Imported"]
    assert [b.category for b in store.list_budgets()] == ["Groceries"]
    assert store.get_chart_preferences().granularity == "daily"
    assert store.load_category_overrides() == {"b" * 64: "Education"}


def test_replace_all_is_all_or_nothing(store: LedgerStore):
    store.save_analysis("local", "local.csv", [make_tx()])
    duplicate_budgets = [
        BudgetPayload(category="Groceries", amount=1, created_date=datetime(2024, 1, 1, tzinfo=UTC)),
        BudgetPayload(category="Groceries", amount=2, created_date=datetime(2024, 1, 1, tzinfo=UTC)),
    ]

    with pytest.raises(IntegrityError):
        store.replace_all(_backup(budgets=duplicate_budgets))

    assert [a.name for a in store.list_analyses()] == ["local"]
    assert store.list_budgets() == []


def test_replace_all_without_chart_preferences(store: LedgerStore):
    store.save_chart_preferences(ChartPreferences())
    summary = store.replace_all(_backup(chart_preferences=None))
    assert summary.has_chart_preferences is False
    assert store.get_chart_preferences() is None
