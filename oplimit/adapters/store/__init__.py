"""Counter store adapters.

This package provides a small abstraction layer so the limiter can start with
an in-memory store and move to Redis or another shared store without changing
the decision logic or the API layer.
"""

from oplimit.adapters.store.base import AbstractCounterStore
from oplimit.adapters.store.factory import create_counter_store
from oplimit.adapters.store.in_memory import InMemoryCounterStore
from oplimit.adapters.store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
