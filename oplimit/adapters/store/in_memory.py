"""In-memory counter store with per-key expiry.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, so add_one is atomic.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from oplimit.adapters.store.base import AbstractCounterStore
from oplimit.core.logging import hash_key

logger = logging.getLogger(__name__)


@dataclass
class _CounterEntry:
    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a dict guarded by a lock.

    Expired entries are dropped lazily on read and swept on every write, so
    old buckets never accumulate beyond one period.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _CounterEntry] = {}
        self._expirations = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(entries={len(self._entries)}, expirations={self._expirations})"

    def get(self, key: str) -> int:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return 0
            if self._is_expired(entry, self._clock()):
                self._expire_single(key)
                return 0
            return entry.count

    def add_one(self, key: str, ttl: timedelta) -> None:
        self.add_one_and_get(key, ttl)

    def add_one_and_get(self, key: str, ttl: timedelta) -> int:
        """Increment ``key`` and return the new count.

        Args:
            key: Bucket key.
            ttl: Time-to-live, measured from now.

        Returns:
            Count after the increment.
        """
        now = self._clock()
        expires_at = now + ttl.total_seconds()

        with self._lock:
            self._expire_stale_locked(now)
            entry = self._entries.get(key)
            if entry is None:
                entry = _CounterEntry(count=0, expires_at=expires_at)
                self._entries[key] = entry
            entry.count += 1
            entry.expires_at = expires_at
            count = entry.count

        logger.debug(
            "store.incremented",
            extra={
                "key_hash": hash_key(key),
                "count": count,
                "ttl_s": ttl.total_seconds(),
            },
        )
        return count

    def clear(self) -> None:
        """Remove all counters and reset statistics."""

        with self._lock:
            self._entries.clear()
            self._expirations = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight store metrics without exposing keys."""

        with self._lock:
            return {
                "entries": len(self._entries),
                "expirations": self._expirations,
            }

    def _expire_single(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self._expirations += 1

    def _expire_stale_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if self._is_expired(entry, now)]
        for key in expired_keys:
            self._expire_single(key)

    @staticmethod
    def _is_expired(entry: _CounterEntry, now: float) -> bool:
        return now >= entry.expires_at
