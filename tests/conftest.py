"""Pytest configuration for test isolation.

The CLI and ``expense_analysis.config`` fall back to a SQLite file under the
data directory (``EA_DATA_DIR``, default ``./.expense_analysis``) and honour
``EXPENSE_ANALYSIS_DATABASE_URL``/``DATABASE_URL`` from the environment or a
local ``.env``. Tests must never touch a developer's real ledger, so every
test gets its own data directory and the URL variables are cleared.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point ``EA_DATA_DIR`` at a per-test directory and drop URL overrides."""

    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("EA_DATA_DIR", os.fspath(data_dir))
    monkeypatch.delenv("EXPENSE_ANALYSIS_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("EA_BACKUP_PASSWORD", raising=False)
    monkeypatch.delenv("EA_TIMEZONE", raising=False)
    # Keep .env discovery away from the working tree
    monkeypatch.chdir(tmp_path)
