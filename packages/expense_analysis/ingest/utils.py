"""Ingest utilities shared by CLI commands.

- ``load_statements``: parse several statement files concurrently, keeping
  the input order.
- ``build_history``: fold a list of statement files, one after the other, into
  an existing transaction history with duplicate suppression.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from os import PathLike
from pathlib import Path

from ..config import get_load_concurrency
from ..duplicates import merge_transactions
from ..logging_setup import get_logger
from ..models import MergeResult, MergeStats, Transaction
from ..pmap import p_map
from .swiss_statement_csv import load_statement

logger = get_logger(__name__)


def load_statements(
    paths: Sequence[str | PathLike[str]], *, concurrency: int | None = None
) -> list[list[Transaction]]:
    """Parse every file in ``paths`` and return one transaction list per file.

    Files are parsed with bounded concurrency (``EA_LOAD_CONCURRENCY`` unless
    ``concurrency`` is given). The first failing file aborts the load with its
    ``StatementReadError`` or ``StatementParseError``.
    """

    if not paths:
        return []
    workers = max(1, min(concurrency or get_load_concurrency(), len(paths)))
    logger.debug("load_statements:start files=%d workers=%d", len(paths), workers)
    return p_map([Path(p) for p in paths], load_statement, concurrency=workers)


def build_history(
    paths: Sequence[str | PathLike[str]],
    existing: Iterable[Transaction] = (),
    *,
    concurrency: int | None = None,
) -> MergeResult:
    """Merge the statements at ``paths`` into ``existing`` in file order.

    The returned stats describe the whole run: ``new_count`` is the total of
    parsed rows across all files and ``duplicates_found`` sums the rejections
    of every step.
    """

    history = list(existing)
    original_count = len(history)
    batches = load_statements(paths, concurrency=concurrency)

    added: list[Transaction] = []
    duplicates: list[Transaction] = []
    incoming_total = 0
    merged: tuple[Transaction, ...] = tuple(history)
    for path, batch in zip(paths, batches, strict=True):
        step = merge_transactions(merged, batch)
        logger.info(
            "build_history:file path=%s parsed=%d added=%d duplicates=%d",
            path,
            len(batch),
            len(step.new_transactions),
            step.stats.duplicates_found,
        )
        merged = step.merged
        added.extend(step.new_transactions)
        duplicates.extend(step.duplicates)
        incoming_total += len(batch)

    return MergeResult(
        merged=merged,
        new_transactions=tuple(added),
        duplicates=tuple(duplicates),
        stats=MergeStats(
            original_count=original_count,
            new_count=incoming_total,
            merged_count=len(merged),
            duplicates_found=len(duplicates),
        ),
    )


__all__ = ["load_statements", "build_history"]
