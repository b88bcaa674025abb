"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models.ledger`` (re-exported for convenience)
- ``Database`` storage context in ``db.client``
"""

from __future__ import annotations

from .client import Database
from .models.ledger import Base, EaAnalysis, EaBudget, EaCategoryOverride, EaChartPreferences

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Database",
    "EaAnalysis",
    "EaBudget",
    "EaCategoryOverride",
    "EaChartPreferences",
]
