"""Content-based duplicate detection and statement merging.

Two records are the same real-world purchase when their *transaction key*
matches::

    <YYYY-MM-DD>|<booking text, lower-cased, whitespace collapsed>|<debit 2dp>|<credit 2dp>

Account, card and sector are deliberately left out so the same purchase
reported slightly differently by two exports still collides. Missing amounts
render as ``0.00``.

Public surface:
- ``transaction_key`` / ``compute_fingerprint``: the composite key and its
  SHA-256 digest (the stable id used for category overrides).
- ``merge_transactions``: fold an incoming batch into a history.
- ``find_internal_duplicates``: groups of repeated rows within one list.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from .logging_setup import get_logger
from .models import MergeResult, MergeStats, Transaction, local_day

logger = get_logger(__name__)


def coerce_date(value: Any) -> date | None:
    """Coerce ``date``/``datetime``/ISO/``DD.MM.YYYY`` values to a calendar day."""

    if isinstance(value, datetime):
        return local_day(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if len(s) > 10 and s[10] in "T ":
        try:
            return local_day(datetime.fromisoformat(s))
        except ValueError:
            pass
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        pass
    parts = s.split(".")
    if len(parts) == 3 and all(p.isascii() and p.isdecimal() for p in parts):
        try:
            return date(int(parts[2]), int(parts[1]), int(parts[0]))
        except (ValueError, OverflowError):
            return None
    return None


def _date_part(value: Any) -> str:
    d = coerce_date(value)
    return d.isoformat() if d is not None else str(value)


def _amount_part(value: float | None) -> str:
    return f"{value:.2f}" if value is not None else "0.00"


def normalize_booking_text(text: str) -> str:
    return " ".join(text.lower().split())


def transaction_key(tx: Transaction) -> str:
    """Return the composite duplicate key for ``tx``."""

    return "|".join(
        (
            _date_part(tx.purchase_date),
            normalize_booking_text(tx.booking_text),
            _amount_part(tx.debit),
            _amount_part(tx.credit),
        )
    )


def compute_fingerprint(tx: Transaction) -> str:
    """SHA-256 hex digest of :func:`transaction_key` (64 lowercase hex chars)."""

    return hashlib.sha256(transaction_key(tx).encode("utf-8")).hexdigest()


def _sort_key(tx: Transaction) -> tuple[int, date]:
    d = coerce_date(tx.purchase_date)
    # Unparseable dates sort after every real date; sorted() keeps their order
    return (0, d) if d is not None else (1, date.min)


def merge_transactions(
    existing: Iterable[Transaction], incoming: Iterable[Transaction]
) -> MergeResult:
    """Merge ``incoming`` into ``existing`` without duplicates.

    Parameters
    ----------
    existing:
        The current history. Kept as-is, including any duplicates it already
        contains.
    incoming:
        A newly parsed batch. A record is rejected when its key is already in
        the history *or* was accepted earlier in the same batch.

    Returns
    -------
    MergeResult
        ``merged`` is ``existing + accepted`` stably sorted ascending by
        purchase date.
    """

    existing_list = list(existing)
    incoming_list = list(incoming)

    seen: set[str] = {transaction_key(tx) for tx in existing_list}
    accepted: list[Transaction] = []
    duplicates: list[Transaction] = []

    for tx in incoming_list:
        key = transaction_key(tx)
        if key in seen:
            duplicates.append(tx)
            continue
        seen.add(key)
        accepted.append(tx)

    merged = sorted([*existing_list, *accepted], key=_sort_key)

    stats = MergeStats(
        original_count=len(existing_list),
        new_count=len(incoming_list),
        merged_count=len(merged),
        duplicates_found=len(duplicates),
    )
    logger.info(
        "merge:done original=%d incoming=%d accepted=%d duplicates=%d",
        stats.original_count,
        stats.new_count,
        len(accepted),
        stats.duplicates_found,
    )
    return MergeResult(
        merged=tuple(merged),
        new_transactions=tuple(accepted),
        duplicates=tuple(duplicates),
        stats=stats,
    )


def find_internal_duplicates(transactions: Iterable[Transaction]) -> list[list[Transaction]]:
    """Group ``transactions`` by key; return only groups with two or more rows.

    Groups appear in order of first occurrence and keep input order inside.
    """

    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        groups.setdefault(transaction_key(tx), []).append(tx)
    return [g for g in groups.values() if len(g) > 1]


__all__ = [
    "coerce_date",
    "normalize_booking_text",
    "transaction_key",
    "compute_fingerprint",
    "merge_transactions",
    "find_internal_duplicates",
]
