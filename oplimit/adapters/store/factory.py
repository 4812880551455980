"""Factory pattern for creating counter store instances."""

from oplimit.adapters.store.base import AbstractCounterStore
from oplimit.adapters.store.in_memory import InMemoryCounterStore
from oplimit.adapters.store.redis_store import RedisCounterStore
from oplimit.core.config import settings
from oplimit.core.errors import ValidationAppError


def create_counter_store() -> AbstractCounterStore:
    """Factory function to instantiate the configured counter store.

    Reads configuration from oplimit.core.config.settings (Pydantic Settings).
    Validates backend-specific requirements and routes to the matching store.

    Returns:
        AbstractCounterStore: Configured counter store instance.

    Raises:
        ValidationAppError: If backend-specific requirements are not met.
    """
    backend = settings.store.backend.lower()

    if backend == "memory":
        return InMemoryCounterStore()

    if backend == "redis":
        if not settings.store.redis_url:
            raise ValidationAppError(
                code="store_missing_redis_url",
                message="Redis store requires STORE_REDIS_URL environment variable",
                details={"backend": backend},
            )
        return RedisCounterStore.from_url(
            settings.store.redis_url,
            key_prefix=settings.store.key_prefix,
            socket_timeout_seconds=settings.store.socket_timeout_seconds,
        )

    raise ValidationAppError(
        code="store_unknown_backend",
        message=(
            f"Unknown counter store backend: '{backend}'. Supported backends: memory, redis"
        ),
        details={"backend": backend},
    )
