"""Parallel topic extraction.

Extraction is a pure function of one entry's bytes, so listing may fan out to
a thread pool. Entry bytes are read sequentially from the archive first; the
result order always matches the archive enumeration order.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from .logging import get_logger

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyConfig:
    """Configuration for concurrency settings."""

    def __init__(self, enabled: bool = False, max_workers: int = 4) -> None:
        self.enabled = enabled
        self.max_workers = max_workers


def get_optimal_worker_count(item_count: int, max_workers: int = 4) -> int:
    """Get optimal worker count based on topic count."""
    small_threshold = 5
    medium_threshold = 20
    if item_count <= small_threshold:
        return 1
    if item_count <= medium_threshold:
        return min(2, max_workers)
    return max_workers


def map_ordered(
    func: Callable[[T], R], items: Sequence[T], config: ConcurrencyConfig
) -> list[R]:
    """Apply ``func`` to every item, in a pool when enabled.

    The first exception raised by ``func`` propagates to the caller.
    """
    workers = get_optimal_worker_count(len(items), config.max_workers)
    if not config.enabled or workers <= 1:
        return [func(item) for item in items]
    logger = get_logger()
    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(func, items))
    logger.log_performance(
        "concurrent_extraction",
        (time.perf_counter() - start) * 1000,
        topic_count=len(items),
        max_workers=workers,
    )
    return results


class ProjectLocks:
    """One lock per target project; synchronization writes hold it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_project(self, project_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(project_id, threading.Lock())


PROJECT_LOCKS = ProjectLocks()


__all__ = ["PROJECT_LOCKS", "ConcurrencyConfig", "ProjectLocks", "get_optimal_worker_count", "map_ordered"]
