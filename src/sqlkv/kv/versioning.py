"""
sqlkv.kv.versioning

Version and timestamp sources for mutations.

Responsibilities:
- Issue strictly increasing 64-bit versions, safe under concurrent callers.
- Capture one wall-clock timestamp per operation.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime

MAX_VERSION = 2**63 - 1


class VersionGenerator:
    """
    Monotonic version source seeded from the wall clock (microseconds since epoch).

    A version is never issued twice by one generator, even within a single clock tick
    or when the clock steps backwards.
    """

    def __init__(self, *, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last = 0

    def next_version(self) -> int:
        return self.next_after(0)

    def next_after(self, version: int) -> int:
        # Also strictly above `version`, which may have been issued by another process.
        with self._lock:
            candidate = max(self._clock() // 1_000, self._last + 1, version + 1)
            if candidate > MAX_VERSION:
                raise OverflowError(f"version {candidate} exceeds 64-bit range")
            self._last = candidate
            return candidate


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


# --- Module Notes -----------------------------------------------------------
# Versions are generated in-process and bound as parameters, so generic and upsert
# engines share one issuing policy. Pass one generator into every engine of a process.
