# ruff: noqa: E501
from __future__ import annotations

import json
from collections.abc import Iterator
from datetime import date
from pathlib import Path

import pytest

from expense_analysis.backup import (
    create_encrypted_backup,
    export_all_data,
    is_valid_backup_data,
    restore_encrypted_backup,
)
from expense_analysis.errors import (
    BackupFormatError,
    DecryptionError,
    UnsupportedBackupVersionError,
)
from expense_analysis.models import ChartPreferences
from expense_analysis.persistence import LedgerStore
from expense_analysis.vault import encrypt_data

from tests.helpers.db import open_database
from tests.helpers.transactions import make_tx

PASSWORD = "Secret123"


def _store(path: Path) -> LedgerStore:
    return LedgerStore(open_database(path))


@pytest.fixture()
def stores(tmp_path: Path) -> Iterator[tuple[LedgerStore, LedgerStore]]:
    source = _store(tmp_path / "source.sqlite3")
    target = _store(tmp_path / "target.sqlite3")
    try:
        yield source, target
    finally:
        source.database.dispose()
        target.database.dispose()


def _seed(store: LedgerStore) -> list:
    txs = [
        make_tx("Coop", sector="Grocery stores", debit=12.5, purchase_date=date(2024, 6, 1)),
        make_tx("Salary", debit=None, credit=5000.0, purchase_date=date(2024, 6, 25)),
    ]
    store.save_analysis("June", "june.csv", txs)
    store.save_budget("Groceries", 400)
    store.save_chart_preferences(ChartPreferences(granularity="weekly", excluded_categories=["Income"]))
    store.set_category_override("f" * 64, "Education")
    return txs


def test_export_all_data_uses_camel_case_keys(stores):
    source, _ = stores
    _seed(source)

    data = export_all_data(source)
    payload = json.loads(data.model_dump_json(by_alias=True))

    assert payload["version"] == 1
    assert {"exportDate", "analyses", "budgets", "chartPreferences", "categoryOverrides"} <= set(payload)
    assert payload["analyses"][0]["fileName"] == "june.csv"
    assert payload["analyses"][0]["transactions"][0]["bookingText"] == "Coop"
    assert payload["chartPreferences"]["excludedCategories"] == ["Income"]
    assert is_valid_backup_data(payload)


def test_encrypted_roundtrip_into_another_store(stores):
    source, target = stores
    txs = _seed(source)
    target.save_budget("Shopping", 10)

    text = create_encrypted_backup(source, PASSWORD)
    envelope = json.loads(text)
    assert set(envelope) == {"version", "salt", "iv", "data", "checksum"}

    summary = restore_encrypted_backup(target, text, PASSWORD)

    assert summary.analyses_count == 1
    assert summary.budgets_count == 1
    assert summary.has_chart_preferences is True
    assert summary.overrides_count == 1
    (analysis,) = target.list_analyses()
    assert list(analysis.transactions) == txs
    assert [(b.category, b.amount) for b in target.list_budgets()] == [("Groceries", 400.0)]
    assert target.get_chart_preferences().granularity == "weekly"
    assert target.load_category_overrides() == {"f" * 64: "Education"}


def test_wrong_password_leaves_store_untouched(stores):
    source, target = stores
    _seed(source)
    target.save_budget("Shopping", 10)
    text = create_encrypted_backup(source, PASSWORD)

    with pytest.raises(DecryptionError):
        restore_encrypted_backup(target, text, "Wrong12345")
    assert [b.category for b in target.list_budgets()] == ["Shopping"]


@pytest.mark.parametrize("text", ["not json", "[]", '{"version": 1}'])
def test_malformed_backup_file_is_a_format_error(stores, text: str):
    _, target = stores
    with pytest.raises(BackupFormatError):
        restore_encrypted_backup(target, text, PASSWORD)


def test_payload_with_wrong_structure_is_a_format_error(stores):
    _, target = stores
    text = encrypt_data(json.dumps({"version": 1, "analyses": []}), PASSWORD).model_dump_json()
    with pytest.raises(BackupFormatError):
        restore_encrypted_backup(target, text, PASSWORD)


def test_payload_with_unknown_version_is_rejected(stores):
    _, target = stores
    payload = {
        "version": 2,
        "exportDate": "2024-07-01T00:00:00Z",
        "analyses": [],
        "budgets": [],
        "chartPreferences": None,
    }
    text = encrypt_data(json.dumps(payload), PASSWORD).model_dump_json()
    with pytest.raises(UnsupportedBackupVersionError):
        restore_encrypted_backup(target, text, PASSWORD)


def test_restore_accepts_payload_without_overrides_and_iso_datetimes(stores):
    _, target = stores
    payload = {
        "version": 1,
        "exportDate": "2024-07-01T00:00:00.000Z",
        "analyses": [
            {
                "id": 7,
                "name": "Web export",
                "fileName": "web.csv",
                "uploadDate": "2024-07-01T08:30:00.000Z",
                "transactions": [
                    {
                        "accountNumber": "1",
                        "cardNumber": "****1",
                        "accountHolder": "J",
                        "purchaseDate": "2024-06-15T00:00:00.000Z",
                        "bookingText": "Restaurant ABC",
                        "sector": "Restaurants",
                        "amount": 50,
                        "originalCurrency": "CHF",
                        "rate": None,
                        "currency": "CHF",
                        "debit": 50,
                        "credit": None,
                        "bookedDate": "2024-06-16T00:00:00.000Z",
                    }
                ],
            }
        ],
        "budgets": [],
        "chartPreferences": None,
    }
    text = encrypt_data(json.dumps(payload), PASSWORD).model_dump_json()

    summary = restore_encrypted_backup(target, text, PASSWORD)

    assert summary.overrides_count == 0
    assert summary.has_chart_preferences is False
    (analysis,) = target.list_analyses()
    (tx,) = analysis.transactions
    assert tx.purchase_date == date(2024, 6, 15)
    assert tx.debit == 50


@pytest.mark.parametrize(
    ("obj", "ok"),
    [
        ({"version": 1, "exportDate": "x", "analyses": [], "budgets": [], "chartPreferences": None}, True),
        ({"version": 1, "exportDate": "x", "analyses": [], "budgets": [], "chartPreferences": {}}, True),
        ({"version": 1, "exportDate": "x", "analyses": [], "budgets": []}, False),
        ({"version": "1", "exportDate": "x", "analyses": [], "budgets": [], "chartPreferences": None}, False),
        ({"version": 1, "exportDate": "x", "analyses": {}, "budgets": [], "chartPreferences": None}, False),
        ([], False),
    ],
)
def test_is_valid_backup_data(obj: object, ok: bool):
    assert is_valid_backup_data(obj) is ok


def _payload_with_budgets(budgets: list[dict]) -> dict:
    return {
        "version": 1,
        "exportDate": "2024-07-01T00:00:00Z",
        "analyses": [],
        "budgets": budgets,
        "chartPreferences": None,
    }


def _budget(category: str, amount: float = 100) -> dict:
    return {"category": category, "amount": amount, "createdDate": "2024-01-01T00:00:00Z"}


@pytest.mark.parametrize(
    "budgets",
    [
        [_budget("Groceries", 100), _budget("groceries", 200)],
        [_budget("Made Up")],
        [_budget("Income")],
        [_budget("Groceries", -5)],
    ],
    ids=["repeated", "unknown", "not-budgetable", "negative"],
)
def test_invalid_budgets_are_rejected_before_anything_is_written(stores, budgets: list[dict]):
    _, target = stores
    target.save_budget("Shopping", 10)
    text = encrypt_data(json.dumps(_payload_with_budgets(budgets)), PASSWORD).model_dump_json()

    with pytest.raises(BackupFormatError):
        restore_encrypted_backup(target, text, PASSWORD)
    assert [b.category for b in target.list_budgets()] == ["Shopping"]


def test_restored_budget_and_override_categories_are_canonical(stores):
    _, target = stores
    payload = _payload_with_budgets([_budget("restaurants & dining", 250)])
    payload["categoryOverrides"] = [{"fingerprint": "d" * 64, "category": "fuel"}]
    text = encrypt_data(json.dumps(payload), PASSWORD).model_dump_json()

    restore_encrypted_backup(target, text, PASSWORD)

    assert [b.category for b in target.list_budgets()] == ["Restaurants & Dining"]
    assert target.load_category_overrides() == {"d" * 64: "Fuel"}


def test_restored_utc_timestamps_land_on_the_local_calendar_day(stores):
    _, target = stores
    tx = {
        "purchaseDate": "2024-06-15T22:00:00.000Z",
        "bookingText": "Late dinner",
        "amount": 40,
        "debit": 40,
        "bookedDate": "2024-06-16T22:00:00.000Z",
    }
    payload = _payload_with_budgets([])
    payload["analyses"] = [
        {"name": "Web", "fileName": "web.csv", "uploadDate": "2024-07-01T08:30:00Z", "transactions": [tx]}
    ]
    text = encrypt_data(json.dumps(payload), PASSWORD).model_dump_json()

    restore_encrypted_backup(target, text, PASSWORD)

    (analysis,) = target.list_analyses()
    (restored,) = analysis.transactions
    assert restored.purchase_date == date(2024, 6, 16)
    assert restored.booked_date == date(2024, 6, 17)
