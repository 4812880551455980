"""Counter store interfaces.

The limiter depends on this abstraction (not a concrete backend) so storage
can move from process memory to Redis or another shared store without
touching the decision logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta


class AbstractCounterStore(ABC):
    """Interface for keyed counters with per-key expiry."""

    @abstractmethod
    def get(self, key: str) -> int:
        """Return the current count for a key.

        Args:
            key: Bucket key.

        Returns:
            Current count, or 0 when the key was never set or has expired.
            Never negative.
        """
        raise NotImplementedError

    @abstractmethod
    def add_one(self, key: str, ttl: timedelta) -> None:
        """Atomically increment the count for a key by one.

        Creates the key at 1 when absent and (re)sets its expiry to ``ttl``
        from the time of the call.

        Args:
            key: Bucket key.
            ttl: Time-to-live applied to the key.
        """
        raise NotImplementedError

    def ping(self) -> bool:
        """Return True when the backend is reachable.

        Process-local stores are always reachable; networked stores override
        this and may raise their client's connection errors.
        """
        return True

    def add_one_and_get(self, key: str, ttl: timedelta) -> int:
        """Atomically increment a key and return its new count.

        Optional capability used by strict limiters. Backends that cannot
        offer a single atomic increment-and-read leave this unimplemented.

        Args:
            key: Bucket key.
            ttl: Time-to-live applied to the key.

        Returns:
            The count after the increment.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support add_one_and_get")
