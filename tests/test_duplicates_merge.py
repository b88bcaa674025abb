from __future__ import annotations

from datetime import UTC, date, datetime

from expense_analysis.duplicates import (
    coerce_date,
    compute_fingerprint,
    find_internal_duplicates,
    merge_transactions,
    transaction_key,
)

from tests.helpers.transactions import make_tx


def test_transaction_key_format():
    tx = make_tx("  Coop   ZURICH ", debit=12.5, purchase_date=date(2024, 6, 1))
    assert transaction_key(tx) == "2024-06-01|coop zurich|12.50|0.00"

    refund = make_tx("Refund", debit=None, credit=3.0, purchase_date=date(2024, 6, 2))
    assert transaction_key(refund) == "2024-06-02|refund|0.00|3.00"


def test_key_ignores_account_card_and_sector():
    a = make_tx("Coop", sector="Grocery stores")
    b = make_tx("COOP", sector="Supermarkets")
    assert transaction_key(a) == transaction_key(b)
    assert compute_fingerprint(a) == compute_fingerprint(b)


def test_fingerprint_is_sha256_hex():
    fp = compute_fingerprint(make_tx())
    assert len(fp) == 64
    assert all(c in "0123456789abcdef" for c in fp)


def test_coerce_date_variants():
    assert coerce_date(date(2024, 1, 2)) == date(2024, 1, 2)
    assert coerce_date(datetime(2024, 1, 2, 13, 5)) == date(2024, 1, 2)
    assert coerce_date("2024-01-02T10:00:00Z") == date(2024, 1, 2)
    assert coerce_date("02.01.2024") == date(2024, 1, 2)
    assert coerce_date("nope") is None
    assert coerce_date("\u00b202.01.2024") is None
    assert coerce_date(None) is None


def test_merge_rejects_duplicates_against_history_and_within_batch():
    existing = [
        make_tx("Coop", purchase_date=date(2024, 6, 10)),
        make_tx("Migros", purchase_date=date(2024, 6, 1)),
    ]
    incoming = [
        make_tx("COOP", purchase_date=date(2024, 6, 10)),  # already in history
        make_tx("Denner", purchase_date=date(2024, 6, 5)),
        make_tx("Denner", purchase_date=date(2024, 6, 5)),  # repeated inside batch
    ]

    result = merge_transactions(existing, incoming)

    assert result.stats.original_count == 2
    assert result.stats.new_count == 3
    assert result.stats.duplicates_found == 2
    assert result.stats.merged_count == 3
    assert [t.booking_text for t in result.new_transactions] == ["Denner"]
    assert [t.booking_text for t in result.duplicates] == ["COOP", "Denner"]
    # Merged history is ordered by purchase date
    assert [t.booking_text for t in result.merged] == ["Migros", "Denner", "Coop"]


def test_merging_a_history_into_itself_adds_nothing():
    history = [
        make_tx("Coop", purchase_date=date(2024, 6, 10)),
        make_tx("Migros", purchase_date=date(2024, 6, 1)),
        make_tx("Salary", debit=None, credit=5000.0, purchase_date=date(2024, 6, 25)),
    ]

    result = merge_transactions(history, history)

    assert result.new_transactions == ()
    assert result.stats.duplicates_found == len(history)
    assert result.stats.merged_count == len(history)
    assert sorted(result.merged, key=lambda t: t.booking_text) == sorted(
        history, key=lambda t: t.booking_text
    )


def test_merge_keeps_existing_duplicates_untouched():
    twice = [make_tx("Coop"), make_tx("Coop")]
    result = merge_transactions(twice, [])
    assert result.stats.merged_count == 2
    assert result.stats.duplicates_found == 0


def test_merge_sort_is_stable_for_equal_dates():
    d = date(2024, 6, 3)
    existing = [make_tx("B", purchase_date=d)]
    incoming = [make_tx("A", purchase_date=d), make_tx("C", purchase_date=date(2024, 6, 1))]
    result = merge_transactions(existing, incoming)
    assert [t.booking_text for t in result.merged] == ["C", "B", "A"]


def test_merge_of_empty_inputs():
    result = merge_transactions([], [])
    assert result.merged == ()
    assert result.stats.merged_count == 0


def test_find_internal_duplicates_groups_in_first_seen_order():
    rows = [
        make_tx("Coop", debit=5.0),
        make_tx("Migros", debit=7.0),
        make_tx("coop", debit=5.0),
        make_tx("Migros", debit=7.0),
        make_tx("Unique", debit=1.0),
    ]
    groups = find_internal_duplicates(rows)
    assert [[t.booking_text for t in g] for g in groups] == [["Coop", "coop"], ["Migros", "Migros"]]


def test_coerce_date_reads_utc_timestamps_in_the_statement_zone(monkeypatch):
    # 22:00 UTC in summer is already the next day in Zurich
    assert coerce_date("2024-06-15T22:00:00.000Z") == date(2024, 6, 16)
    assert coerce_date(datetime(2024, 1, 15, 23, 30, tzinfo=UTC)) == date(2024, 1, 16)
    assert coerce_date("2024-06-15T22:00:00") == date(2024, 6, 15)

    monkeypatch.setenv("EA_TIMEZONE", "UTC")
    assert coerce_date("2024-06-15T22:00:00.000Z") == date(2024, 6, 15)
