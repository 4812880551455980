"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter store is built by a factory behind an abstract
  interface (memory or Redis).
- Explicit store-failure policy: fail open or fail closed, per settings.

Rate limiting strategy:
- Each caller gets its own quota per operation and window.
- The caller is identified by a hash of the API key, or the client IP when the
  key is missing (e.g., auth disabled).
- Gated routes use the route path as the operation name.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from oplimit.adapters.store.factory import create_counter_store
from oplimit.core.config import settings
from oplimit.core.errors import StoreAccessError
from oplimit.core.logging import hash_key
from oplimit.limiter.fixed_window import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


_limiter: FixedWindowRateLimiter | None = None
_limiter_config: tuple | None = None


def _current_config() -> tuple:
    return (
        settings.app.rate_limit_max_operations,
        settings.app.rate_limit_period_seconds,
        settings.app.rate_limit_bucket_mode,
        settings.app.rate_limit_strict,
        settings.store.backend,
        settings.store.redis_url,
        settings.store.key_prefix,
        settings.store.socket_timeout_seconds,
    )


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter and its store
    are rebuilt.

    Returns:
        FixedWindowRateLimiter: Configured limiter instance.

    Raises:
        ConfigurationError: If the configured period or mode is invalid.
        ValidationAppError: If the configured store backend is invalid.
    """

    global _limiter, _limiter_config

    config = _current_config()

    if _limiter is None or _limiter_config != config:
        _limiter = FixedWindowRateLimiter(
            settings.app.rate_limit_max_operations,
            timedelta(seconds=settings.app.rate_limit_period_seconds),
            create_counter_store(),
            bucket_mode=settings.app.rate_limit_bucket_mode,
            strict=settings.app.rate_limit_strict,
        )
        _limiter_config = config
        logger.info(
            "rate_limit.limiter_built",
            extra={
                "limit": settings.app.rate_limit_max_operations,
                "window_s": settings.app.rate_limit_period_seconds,
                "bucket_mode": settings.app.rate_limit_bucket_mode,
                "strict": settings.app.rate_limit_strict,
                "store_backend": settings.store.backend,
            },
        )

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter so the next call rebuilds it with a fresh store."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None


def build_caller_identity(request: Request, x_api_key: str | None) -> str:
    """Build the caller part of an operation name for the current request.

    Args:
        request: FastAPI request.
        x_api_key: API key value from the X-API-Key header.

    Returns:
        str: Namespaced caller identity; API keys are hashed.
    """

    if x_api_key:
        return f"api_key:{hash_key(x_api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def check_operation(limiter: FixedWindowRateLimiter, op_name: str) -> bool:
    """Run the limiter for ``op_name`` applying the store-failure policy.

    Args:
        limiter: Limiter to consult.
        op_name: Fully qualified operation name (caller and operation).

    Returns:
        True if the limit is exceeded, False if the attempt was recorded
        (or the store failed and the policy is fail open).

    Raises:
        StoreAccessError: If the store failed and the policy is fail closed.
    """

    try:
        return limiter.limit_exceeded(op_name)
    except StoreAccessError as exc:
        policy = "fail_open" if settings.app.rate_limit_fail_open else "fail_closed"
        logger.error(
            "rate_limit.store_unavailable",
            extra={
                "error_code": exc.code,
                "key_hash": hash_key(exc.key),
                "policy": policy,
            },
        )
        if settings.app.rate_limit_fail_open:
            return False
        raise


async def check_operation_in_executor(limiter: FixedWindowRateLimiter, op_name: str) -> bool:
    """Run :func:`check_operation` in the default thread pool.

    Store clients are synchronous (e.g., redis-py), so the check is kept off
    the event loop to let concurrent requests proceed during store round-trips.
    """

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, check_operation, limiter, op_name)


def store_reachable(limiter: FixedWindowRateLimiter) -> bool:
    """Return whether the limiter's counter store answers a ping."""

    try:
        return limiter.store.ping()
    except Exception as exc:
        logger.error(
            "store.ping_failed",
            extra={
                "error_type": type(exc).__name__,
                "backend": type(limiter.store).__name__,
            },
        )
        return False


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, records one operation for the requester on the current
    route. If the window quota is already used up, raises HTTP 429.

    Args:
        request: FastAPI request.
        x_api_key: API key from X-API-Key header.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
        StoreAccessError: When the store fails and the policy is fail closed.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter()
    identity = build_caller_identity(request, x_api_key)
    route = request.scope.get("route")
    route_path = route.path if route is not None else request.url.path
    op_name = f"{identity}:{route_path}"
    key_type = "api_key" if x_api_key else "ip"

    if not await check_operation_in_executor(limiter, op_name):
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": hash_key(op_name),
                "limit": limiter.max_operations,
                "window_s": limiter.period.total_seconds(),
            },
        )
        return

    retry_after = limiter.seconds_until_reset()
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": hash_key(op_name),
            "limit": limiter.max_operations,
            "window_s": limiter.period.total_seconds(),
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(limiter.max_operations)
        headers["X-RateLimit-Remaining"] = "0"

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
