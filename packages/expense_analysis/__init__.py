"""expense_analysis: Swiss bank-statement analysis.

Public API
----------
- Ingest: :func:`load_statement`, :func:`parse_statement_text`, :func:`build_history`
- Categorization: :func:`categorize_transaction`, :func:`explain_category`
- Reports: :func:`analyze_expenses`, :func:`calculate_budget_status`
- History: :func:`merge_transactions`, :func:`compute_fingerprint`
- Storage and backups: :class:`LedgerStore`, :func:`create_encrypted_backup`,
  :func:`restore_encrypted_backup`
"""

from __future__ import annotations

from .backup import create_encrypted_backup, export_all_data, restore_encrypted_backup
from .categorization import categorize_transaction, explain_category
from .duplicates import compute_fingerprint, merge_transactions
from .ingest import build_history, load_statement, parse_statement_text
from .models import Budget, ExpenseReport, Transaction
from .periods import compare_periods, filter_by_period, resolve_period
from .persistence import LedgerStore
from .report import analyze_expenses, calculate_budget_status

__all__ = [
    "Transaction",
    "Budget",
    "ExpenseReport",
    "load_statement",
    "parse_statement_text",
    "build_history",
    "categorize_transaction",
    "explain_category",
    "analyze_expenses",
    "calculate_budget_status",
    "merge_transactions",
    "compute_fingerprint",
    "resolve_period",
    "filter_by_period",
    "compare_periods",
    "LedgerStore",
    "export_all_data",
    "create_encrypted_backup",
    "restore_encrypted_backup",
]
