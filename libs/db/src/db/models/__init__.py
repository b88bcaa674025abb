"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``expense_analysis``.
"""

from .ledger import Base, EaAnalysis, EaBudget, EaCategoryOverride, EaChartPreferences

__all__ = [
    "Base",
    "EaAnalysis",
    "EaBudget",
    "EaCategoryOverride",
    "EaChartPreferences",
]
