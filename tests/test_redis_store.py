"""Unit tests for the Redis counter store (client mocked)."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import redis

from oplimit.adapters.store.redis_store import RedisCounterStore
from oplimit.core.errors import StoreAccessError
from oplimit.limiter.fixed_window import FixedWindowRateLimiter


@pytest.fixture
def client() -> MagicMock:
    return MagicMock(spec=redis.Redis)


def _pipeline(client: MagicMock) -> MagicMock:
    return client.pipeline.return_value.__enter__.return_value


def test_get_missing_key_returns_zero(client: MagicMock) -> None:
    client.get.return_value = None
    store = RedisCounterStore(client, key_prefix="rl:")

    assert store.get("login_1") == 0
    client.get.assert_called_once_with("rl:login_1")


def test_get_parses_counter_bytes(client: MagicMock) -> None:
    client.get.return_value = b"7"
    store = RedisCounterStore(client)

    assert store.get("login_1") == 7


def test_add_one_runs_incr_and_pexpire_in_transaction(client: MagicMock) -> None:
    pipe = _pipeline(client)
    pipe.execute.return_value = [4, True]
    store = RedisCounterStore(client, key_prefix="rl:")

    count = store.add_one_and_get("login_1", timedelta(seconds=90))

    assert count == 4
    client.pipeline.assert_called_once_with(transaction=True)
    pipe.incr.assert_called_once_with("rl:login_1")
    pipe.pexpire.assert_called_once_with("rl:login_1", 90_000)


def test_add_one_discards_count(client: MagicMock) -> None:
    _pipeline(client).execute.return_value = [1, True]
    store = RedisCounterStore(client)

    assert store.add_one("login_1", timedelta(seconds=1)) is None


def test_from_url_builds_client() -> None:
    with patch("oplimit.adapters.store.redis_store.redis.Redis.from_url") as from_url:
        store = RedisCounterStore.from_url(
            "redis://localhost:6379/0",
            key_prefix="rl:",
            socket_timeout_seconds=1.5,
        )

    from_url.assert_called_once_with("redis://localhost:6379/0", socket_timeout=1.5)
    assert store._key_prefix == "rl:"


def test_connection_error_surfaces_as_store_access_error(client: MagicMock) -> None:
    client.get.side_effect = redis.ConnectionError("connection refused")
    limiter = FixedWindowRateLimiter(3, timedelta(minutes=1), RedisCounterStore(client))

    with pytest.raises(StoreAccessError) as exc_info:
        limiter.limit_exceeded("login")

    assert isinstance(exc_info.value.cause, redis.ConnectionError)
    client.pipeline.assert_not_called()


def test_ping_delegates_to_client(client: MagicMock) -> None:
    client.ping.return_value = True

    assert RedisCounterStore(client).ping() is True
    client.ping.assert_called_once_with()
