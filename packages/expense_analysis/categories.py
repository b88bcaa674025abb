"""Category vocabulary and small validation helpers.

The vocabulary is closed and flat: every transaction maps to exactly one of
``CATEGORIES`` and ``"Other"`` is the guaranteed fallback. Budgets may only be
declared for ``BUDGETABLE_CATEGORIES`` (everything except Income and Other).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

OTHER: Final = "Other"
INCOME: Final = "Income"

CATEGORIES: tuple[str, ...] = (
    "Restaurants & Dining",
    "Groceries",
    "Transportation",
    "Travel & Accommodation",
    "Shopping",
    "Health & Beauty",
    "Digital Services",
    "Insurance & Financial",
    "Entertainment",
    "Fuel",
    "Fitness & Sports",
    "Utilities & Telecom",
    "Professional Services",
    "Government & Taxes",
    "Crypto & Investments",
    "Education",
    "Housing",
    INCOME,
    OTHER,
)

BUDGETABLE_CATEGORIES: tuple[str, ...] = tuple(c for c in CATEGORIES if c not in {INCOME, OTHER})

_BY_LOWER: dict[str, str] = {c.lower(): c for c in CATEGORIES}


def normalize_name(name: str) -> str:
    """Return ``name`` trimmed with internal whitespace collapsed."""

    return " ".join(name.strip().split())


def resolve_category(name: str | None) -> str | None:
    """Map user input to the canonical label, case-insensitively.

    Returns ``None`` when ``name`` is empty or not part of the vocabulary.
    """

    if not name:
        return None
    return _BY_LOWER.get(normalize_name(name).lower())


def is_category(name: str | None) -> bool:
    return name is not None and name in _BY_LOWER.values()


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_budget_category(name: str) -> NameValidation:
    """Check that ``name`` is a category a budget can be declared for."""

    canonical = resolve_category(name)
    if canonical is None:
        return NameValidation(False, f"Unknown category: {name!r}")
    if canonical not in BUDGETABLE_CATEGORIES:
        return NameValidation(False, f"Budgets cannot be set for {canonical!r}")
    return NameValidation(True, None)


__all__ = [
    "CATEGORIES",
    "BUDGETABLE_CATEGORIES",
    "OTHER",
    "INCOME",
    "NameValidation",
    "normalize_name",
    "resolve_category",
    "is_category",
    "validate_budget_category",
]
