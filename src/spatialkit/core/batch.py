"""
Batch execution with per-item error handling.

Overlay and measurement functions process each feature independently, so
a batch can be split into chunks, run sequentially or in a process pool,
and recombined by position.

Error modes
-----------
- ``"raise"``: the first ``SpatialError`` aborts the whole batch.
- ``"collect"``: each item gets an ``ItemResult`` carrying either its
  value or its error, and processing continues.

Only ``SpatialError`` subclasses are collected. Anything else is a bug in
the caller's function and always propagates.
"""

from __future__ import annotations

import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from spatialkit.errors import SpatialError


ERROR_MODES = ("raise", "collect")

DEFAULT_CHUNK_SIZE = 10_000


@dataclass(frozen=True)
class ItemResult:
    """Outcome of one batch item."""

    index: int
    value: Any = None
    error: Optional[SpatialError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _get_parallel_settings() -> tuple[bool, Optional[int], int]:
    """Parallel settings from config, or defaults when config is absent."""
    try:
        from config import OVERLAY_CHUNK_SIZE, PARALLEL_ENABLED, PARALLEL_MAX_WORKERS
        return PARALLEL_ENABLED, PARALLEL_MAX_WORKERS, OVERLAY_CHUNK_SIZE
    except ImportError:
        return True, None, DEFAULT_CHUNK_SIZE


def _run_chunk(func: Callable[[Any], Any], start: int, items: Sequence[Any], on_error: str) -> list[ItemResult]:
    results = []
    for offset, item in enumerate(items):
        index = start + offset
        try:
            results.append(ItemResult(index, func(item)))
        except SpatialError as e:
            if on_error == "raise":
                raise
            results.append(ItemResult(index, error=e))
    return results


def run_batch(
    items: Sequence[Any],
    func: Callable[[Any], Any],
    on_error: str = "raise",
    n_workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    timeout: Optional[float] = None,
) -> list[ItemResult]:
    """
    Apply ``func`` to every item, returning results in input order.

    Parameters
    ----------
    items : sequence
        Independent work items.
    func : callable
        Per-item function. Must be picklable when ``n_workers > 1``.
    on_error : {'raise', 'collect'}
        Error mode (see module docstring).
    n_workers : int, optional
        Worker processes. ``None`` or 1 runs in the calling process.
    chunk_size : int, optional
        Items per submitted chunk. Defaults to ``OVERLAY_CHUNK_SIZE``.
    timeout : float, optional
        Deadline in seconds for all parallel chunks. When it passes,
        pending chunks are cancelled and ``concurrent.futures.TimeoutError``
        is raised without waiting for chunks already running.

    Returns
    -------
    list[ItemResult]
        One result per item, ordered by item index.
    """
    if on_error not in ERROR_MODES:
        raise ValueError(f"on_error must be one of {ERROR_MODES}, got '{on_error}'")

    parallel_enabled, max_workers, default_chunk = _get_parallel_settings()
    chunk_size = chunk_size or default_chunk
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive: {chunk_size}")

    chunks = [(start, items[start:start + chunk_size]) for start in range(0, len(items), chunk_size)]

    if n_workers is not None and max_workers is not None:
        n_workers = min(n_workers, max_workers)
    use_parallel = parallel_enabled and n_workers is not None and n_workers > 1 and len(chunks) > 1

    if not use_parallel:
        results = []
        for start, chunk in chunks:
            results.extend(_run_chunk(func, start, chunk, on_error))
        return results

    n_workers = min(n_workers, len(chunks), multiprocessing.cpu_count())
    results = []
    # Not a context manager: leaving one waits for every queued chunk
    executor = ProcessPoolExecutor(max_workers=n_workers)
    try:
        futures = [
            executor.submit(_run_chunk, func, start, chunk, on_error)
            for start, chunk in chunks
        ]
        for future in as_completed(futures, timeout=timeout):
            results.extend(future.result())
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    results.sort(key=lambda r: r.index)
    return results


__all__ = ["ERROR_MODES", "ItemResult", "run_batch"]
