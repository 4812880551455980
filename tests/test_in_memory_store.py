"""Unit tests for the in-memory counter store."""

import threading
from datetime import timedelta

from oplimit.adapters.store.in_memory import InMemoryCounterStore


def test_get_returns_zero_for_unknown_key(store) -> None:
    assert store.get("missing") == 0


def test_add_one_creates_and_increments(store) -> None:
    ttl = timedelta(seconds=30)

    store.add_one("k", ttl)
    store.add_one("k", ttl)

    assert store.get("k") == 2
    assert store.add_one_and_get("k", ttl) == 3


def test_entry_expires_after_ttl(store, clock) -> None:
    store.add_one("k", timedelta(seconds=5))

    clock.advance(4)
    assert store.get("k") == 1

    clock.advance(1)
    assert store.get("k") == 0
    assert store.stats()["expirations"] == 1


def test_add_one_refreshes_expiry(store, clock) -> None:
    ttl = timedelta(seconds=5)
    store.add_one("k", ttl)

    clock.advance(4)
    store.add_one("k", ttl)
    clock.advance(4)

    assert store.get("k") == 2


def test_expired_counter_restarts_at_one(store, clock) -> None:
    ttl = timedelta(seconds=5)
    store.add_one("k", ttl)
    store.add_one("k", ttl)

    clock.advance(6)

    assert store.add_one_and_get("k", ttl) == 1


def test_writes_sweep_stale_entries(store, clock) -> None:
    store.add_one("old-1", timedelta(seconds=1))
    store.add_one("old-2", timedelta(seconds=1))

    clock.advance(2)
    store.add_one("fresh", timedelta(seconds=1))

    stats = store.stats()
    assert stats["entries"] == 1
    assert stats["expirations"] == 2


def test_clear_resets_state(store) -> None:
    store.add_one("a", timedelta(seconds=10))
    store.add_one("b", timedelta(seconds=10))

    store.clear()

    assert store.stats() == {"entries": 0, "expirations": 0}
    assert store.get("a") == 0


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryCounterStore()
    ttl = timedelta(minutes=1)
    workers = 20
    per_worker = 50

    def _writer() -> None:
        for _ in range(per_worker):
            store.add_one("shared", ttl)

    threads = [threading.Thread(target=_writer) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get("shared") == workers * per_worker


def test_ping_is_always_true(store) -> None:
    assert store.ping() is True
