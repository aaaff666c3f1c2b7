"""
Counter stores for the fixed-window rate limiter.

The in-memory store is per process. Running several instances gives every
instance its own counters; a shared store must implement ``RateLimitStore``
for limits to hold across instances.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from shared.logging import get_logger


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitEntry:
    count: int
    reset_at: int  # epoch milliseconds

    def expired(self, now_ms: int) -> bool:
        return self.reset_at <= now_ms


class RateLimitStore(Protocol):
    """Atomic fixed-window counter backend."""

    def hit(self, key: str, window_ms: int) -> RateLimitEntry:
        """Count one request for ``key`` and return a snapshot of its entry."""
        ...

    def sweep(self) -> int:
        """Drop expired entries, returning how many were removed."""
        ...

    def now_ms(self) -> int:
        ...


class InMemoryRateLimitStore:
    """Process-local store guarded by a single lock.

    ``hit`` increments and reads back under the lock, so concurrent callers
    for one key each observe a distinct count. Expired entries are removed by
    ``sweep``, which also runs lazily once per ``sweep_interval_ms``.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None, sweep_interval_ms: int = 60_000):
        self._clock = clock or _now_ms
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self.sweep_interval_ms = sweep_interval_ms
        self._last_sweep = self._clock()
        self.logger = get_logger("ratelimit.store")

    def now_ms(self) -> int:
        return self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            entry = self._entries.get(key)
            return RateLimitEntry(entry.count, entry.reset_at) if entry else None

    def hit(self, key: str, window_ms: int) -> RateLimitEntry:
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval_ms:
                self._sweep_locked(now)

            entry = self._entries.get(key)
            if entry is None or entry.expired(now):
                entry = RateLimitEntry(count=1, reset_at=now + window_ms)
                self._entries[key] = entry
            else:
                entry.count += 1
            return RateLimitEntry(entry.count, entry.reset_at)

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: int) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            self.logger.debug("Swept expired rate limit entries", removed=len(expired),
                              remaining=len(self._entries))
        return len(expired)

    def reset(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None
