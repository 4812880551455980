"""Redis-backed counter store.

Shares counters across processes and hosts. ``INCR`` and ``PEXPIRE`` run in a
single MULTI/EXEC pipeline, so increments are atomic and every write refreshes
the key's expiry.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import redis

from oplimit.adapters.store.base import AbstractCounterStore
from oplimit.core.logging import hash_key

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store using Redis string counters with per-key TTL."""

    def __init__(self, client: redis.Redis, *, key_prefix: str = "") -> None:
        """Initialize the store around an existing client.

        Args:
            client: Synchronous Redis client.
            key_prefix: Namespace prepended to every key.
        """
        self._client = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "",
        socket_timeout_seconds: float | None = None,
    ) -> "RedisCounterStore":
        """Build a store from a ``redis://`` URL."""

        client = redis.Redis.from_url(url, socket_timeout=socket_timeout_seconds)
        return cls(client, key_prefix=key_prefix)

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def get(self, key: str) -> int:
        raw = self._client.get(self._full_key(key))
        if raw is None:
            return 0
        return max(0, int(raw))

    def add_one(self, key: str, ttl: timedelta) -> None:
        self.add_one_and_get(key, ttl)

    def add_one_and_get(self, key: str, ttl: timedelta) -> int:
        full_key = self._full_key(key)
        ttl_ms = max(1, int(ttl.total_seconds() * 1000))

        with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(full_key)
            pipe.pexpire(full_key, ttl_ms)
            count, _ = pipe.execute()

        logger.debug(
            "store.incremented",
            extra={
                "key_hash": hash_key(full_key),
                "count": int(count),
                "ttl_ms": ttl_ms,
            },
        )
        return int(count)

    def ping(self) -> bool:
        """Return True when the Redis server answers PING."""

        return bool(self._client.ping())
