from __future__ import annotations

import threading

import pytest

from bcfimport.concurrency import ConcurrencyConfig, ProjectLocks, get_optimal_worker_count, map_ordered


def test_concurrency_config_defaults() -> None:
    config = ConcurrencyConfig()
    assert config.enabled is False
    assert config.max_workers == 4


@pytest.mark.parametrize("count,expected", [(1, 1), (5, 1), (6, 2), (20, 2), (21, 4)])
def test_optimal_worker_count(count: int, expected: int) -> None:
    assert get_optimal_worker_count(count, max_workers=4) == expected


def test_map_ordered_sequential_when_disabled() -> None:
    threads: set[int] = set()

    def work(x: int) -> int:
        threads.add(threading.get_ident())
        return x * 2

    assert map_ordered(work, list(range(30)), ConcurrencyConfig()) == [x * 2 for x in range(30)]
    assert threads == {threading.get_ident()}


def test_map_ordered_parallel_preserves_order() -> None:
    items = list(range(40))
    assert map_ordered(lambda x: x + 1, items, ConcurrencyConfig(enabled=True, max_workers=3)) == [
        x + 1 for x in items
    ]


def test_map_ordered_propagates_errors() -> None:
    def work(x: int) -> int:
        if x == 25:
            raise ValueError("bad item")
        return x

    with pytest.raises(ValueError, match="bad item"):
        map_ordered(work, list(range(30)), ConcurrencyConfig(enabled=True))


def test_project_locks_are_shared_per_project() -> None:
    locks = ProjectLocks()
    assert locks.for_project("a") is locks.for_project("a")
    assert locks.for_project("a") is not locks.for_project("b")
