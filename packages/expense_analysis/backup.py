"""Encrypted export and restore of everything in a :class:`LedgerStore`.

Export serializes analyses, budgets, chart preferences and category overrides
as camelCase JSON (``BackupData``) and seals it with :mod:`expense_analysis.vault`.
Restore reverses the steps and validates at each boundary before anything in
the store is touched.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .categories import resolve_category, validate_budget_category
from .errors import BackupFormatError, UnsupportedBackupVersionError
from .logging_setup import get_logger
from .models import (
    AnalysisPayload,
    BackupData,
    BudgetPayload,
    CategoryOverridePayload,
    ImportSummary,
    TransactionPayload,
)
from .persistence import LedgerStore
from .vault import decrypt_data, encrypt_data, is_valid_encrypted_backup

logger = get_logger(__name__)

BACKUP_VERSION = 1

_REQUIRED_KEYS = ("version", "exportDate", "analyses", "budgets", "chartPreferences")


def export_all_data(store: LedgerStore) -> BackupData:
    """Snapshot the whole store as a version-1 ``BackupData``."""

    analyses = [
        AnalysisPayload(
            id=a.id,
            name=a.name,
            file_name=a.file_name,
            upload_date=a.upload_date,
            transactions=[TransactionPayload.from_transaction(t) for t in a.transactions],
        )
        for a in store.list_analyses()
    ]
    budgets = [
        BudgetPayload(
            id=b.id,
            category=b.category,
            amount=b.amount,
            created_date=b.created_date,
        )
        for b in store.list_budgets()
    ]
    overrides = [
        CategoryOverridePayload(fingerprint=fp, category=cat)
        for fp, cat in sorted(store.load_category_overrides().items())
    ]
    return BackupData(
        version=BACKUP_VERSION,
        export_date=datetime.now(UTC).isoformat(),
        analyses=analyses,
        budgets=budgets,
        chart_preferences=store.get_chart_preferences(),
        category_overrides=overrides,
    )


def is_valid_backup_data(obj: Any) -> bool:
    """Structural check of a decrypted payload.

    Requires an integer ``version``, a string ``exportDate``, list-valued
    ``analyses`` and ``budgets`` and a ``chartPreferences`` key (object or null).
    """

    if not isinstance(obj, Mapping):
        return False
    if any(k not in obj for k in _REQUIRED_KEYS):
        return False
    version = obj["version"]
    if isinstance(version, bool) or not isinstance(version, int):
        return False
    if not isinstance(obj["exportDate"], str):
        return False
    if not isinstance(obj["analyses"], list) or not isinstance(obj["budgets"], list):
        return False
    prefs = obj["chartPreferences"]
    return prefs is None or isinstance(prefs, Mapping)


def create_encrypted_backup(store: LedgerStore, password: str) -> str:
    """Export the store and return the encrypted envelope as JSON text."""

    data = export_all_data(store)
    plaintext = data.model_dump_json(by_alias=True)
    envelope = encrypt_data(plaintext, password)
    logger.info(
        "backup:export analyses=%d budgets=%d overrides=%d",
        len(data.analyses),
        len(data.budgets),
        len(data.category_overrides),
    )
    return envelope.model_dump_json()


def restore_encrypted_backup(store: LedgerStore, text: str, password: str) -> ImportSummary:
    """Decrypt ``text`` and replace the store contents with it.

    Raises
    ------
    BackupFormatError
        The file is not JSON, not an envelope, or the payload is malformed.
    UnsupportedBackupVersionError
        Envelope or payload carries a version other than 1.
    DecryptionError, IntegrityCheckError
        Propagated from :func:`expense_analysis.vault.decrypt_data`.
    """

    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise BackupFormatError() from e
    if not is_valid_encrypted_backup(raw):
        raise BackupFormatError()

    plaintext = decrypt_data(raw, password)

    try:
        payload = json.loads(plaintext)
    except json.JSONDecodeError as e:
        raise BackupFormatError("Invalid backup data structure") from e
    if not is_valid_backup_data(payload):
        raise BackupFormatError("Invalid backup data structure")
    if payload["version"] != BACKUP_VERSION:
        raise UnsupportedBackupVersionError(payload["version"])

    try:
        backup = BackupData.model_validate(payload)
    except ValidationError as e:
        raise BackupFormatError("Invalid backup data structure") from e
    backup = _canonical_categories(backup)

    summary = store.replace_all(backup)
    logger.info(
        "backup:restore analyses=%d budgets=%d", summary.analyses_count, summary.budgets_count
    )
    return summary


def _canonical_categories(backup: BackupData) -> BackupData:
    """Budgets and overrides with canonical category names.

    A budget must name a budgetable category at most once with a non-negative
    amount, and an override must name a known category; otherwise the payload
    is rejected as a whole.
    """

    seen: set[str] = set()
    budgets: list[BudgetPayload] = []
    for b in backup.budgets:
        check = validate_budget_category(b.category)
        canonical = resolve_category(b.category)
        bad_amount = not math.isfinite(b.amount) or b.amount < 0
        if not check.ok or canonical is None or canonical in seen or bad_amount:
            logger.warning("backup:invalid_budget category=%r amount=%s", b.category, b.amount)
            raise BackupFormatError("Invalid backup data structure")
        seen.add(canonical)
        budgets.append(b.model_copy(update={"category": canonical}))

    overrides: list[CategoryOverridePayload] = []
    for o in backup.category_overrides:
        canonical = resolve_category(o.category)
        if canonical is None:
            logger.warning("backup:invalid_override category=%r", o.category)
            raise BackupFormatError("Invalid backup data structure")
        overrides.append(o.model_copy(update={"category": canonical}))

    return backup.model_copy(update={"budgets": budgets, "category_overrides": overrides})


__all__ = [
    "BACKUP_VERSION",
    "export_all_data",
    "is_valid_backup_data",
    "create_encrypted_backup",
    "restore_encrypted_backup",
]
