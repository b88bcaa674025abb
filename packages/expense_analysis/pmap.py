"""Bounded-concurrency ordered map over a thread pool (``p-map`` style).

``p_map(items, mapper, concurrency=n)`` runs at most ``n`` mapper calls at
once and returns results in input order. Statement loading uses it to parse
several exports side by side; the mappers are I/O bound (file reads) so
threads are sufficient.

The first failing mapper aborts the run: work not yet started is cancelled and
the original exception propagates unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from itertools import islice
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` in flight."""

    if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    pending_items = enumerate(iterable)
    results: dict[int, OutT] = {}

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        in_flight: dict[Future[OutT], int] = {}

        def _fill(n: int) -> None:
            for idx, item in islice(pending_items, n):
                in_flight[pool.submit(mapper, item)] = idx

        _fill(concurrency)
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = in_flight.pop(fut)
                exc = fut.exception()
                if exc is not None:
                    for other in in_flight:
                        other.cancel()
                    raise exc
                results[idx] = fut.result()
            _fill(len(done))

    return [results[i] for i in sorted(results)]


__all__ = ["p_map"]
