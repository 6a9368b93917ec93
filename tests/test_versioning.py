"""
tests.test_versioning

Version generator ordering under frozen clocks and concurrent callers.
"""

from __future__ import annotations

import threading
from datetime import UTC

import pytest

from sqlkv.kv.versioning import MAX_VERSION, VersionGenerator, utcnow


def test_versions_are_seeded_from_clock_in_microseconds() -> None:
    gen = VersionGenerator(clock=lambda: 5_000_000_000)
    assert gen.next_version() == 5_000_000


def test_frozen_clock_still_increases() -> None:
    gen = VersionGenerator(clock=lambda: 1_000)
    issued = [gen.next_version() for _ in range(100)]
    assert issued == sorted(set(issued))
    assert len(issued) == 100


def test_clock_moving_backwards_never_repeats() -> None:
    ticks = iter([10_000_000, 1_000, 2_000])
    gen = VersionGenerator(clock=lambda: next(ticks))
    first, second, third = gen.next_version(), gen.next_version(), gen.next_version()
    assert first < second < third


def test_next_after_exceeds_given_version() -> None:
    gen = VersionGenerator(clock=lambda: 1_000)
    assert gen.next_after(10**15) == 10**15 + 1


def test_overflow_raises() -> None:
    gen = VersionGenerator(clock=lambda: 0)
    with pytest.raises(OverflowError):
        gen.next_after(MAX_VERSION)


def test_concurrent_callers_get_unique_versions() -> None:
    gen = VersionGenerator(clock=lambda: 42_000)
    issued: list[int] = []
    lock = threading.Lock()

    def worker() -> None:
        local = [gen.next_version() for _ in range(500)]
        with lock:
            issued.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(issued) == 4_000
    assert len(set(issued)) == 4_000


def test_utcnow_is_timezone_aware() -> None:
    assert utcnow().tzinfo is UTC
