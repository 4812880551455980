"""Fixed-window operation rate limiter.

Counts operations per named key inside recurring fixed windows and answers
whether the quota for the current window is already used up. All mutable
state lives in an injected counter store; the limiter itself only computes
bucket keys and sequences the read, compare and increment calls.

Notes:
- Non-strict mode reads then increments. Concurrent callers racing on the
  same key can overshoot the limit by up to (racing callers - 1).
- Strict mode relies on the store's atomic add_one_and_get and is a hard cap.
- Expiry is delegated to the store through a TTL equal to the period.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

from oplimit.adapters.store.base import AbstractCounterStore
from oplimit.core.errors import ConfigurationError, StoreAccessError
from oplimit.core.logging import hash_key

logger = logging.getLogger(__name__)

MIN_PERIOD = timedelta(seconds=1)
MAX_PERIOD = timedelta(hours=1)

KEY_SEPARATOR = "_"

BucketMode = Literal["epoch", "cyclic"]
BUCKET_MODES: tuple[str, ...] = ("epoch", "cyclic")


class FixedWindowRateLimiter:
    """Rate limiter placing every operation into its fixed time window bucket.

    Two bucketing modes are supported:

    ``epoch`` (default)
        The bucket id is ``floor(now / period)``. Ids increase monotonically,
        so windows never alias and every window is exactly ``period`` long.

    ``cyclic``
        The bucket id is a clock field chosen from the period: second of
        minute below one minute, minute of hour below one hour, hour of day
        otherwise (UTC). Ids repeat, so a window can reset at a clock boundary
        and two calls far apart can land in the same bucket if the earlier
        counter has not expired yet.

    A ``max_operations`` of zero or less is accepted and blocks every call.
    """

    def __init__(
        self,
        max_operations: int,
        period: timedelta,
        store: AbstractCounterStore,
        *,
        bucket_mode: BucketMode = "epoch",
        strict: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_operations: Upper bound of operations per window.
            period: Window length, between 1 second and 1 hour inclusive.
            store: Counter store holding per-bucket counts.
            bucket_mode: ``"epoch"`` or ``"cyclic"`` bucket identifiers.
            strict: Use the store's atomic increment-and-get primitive.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ConfigurationError: If the period is out of range, the bucket mode
                is unknown, or strict mode is requested on a store without
                add_one_and_get.
        """
        if period < MIN_PERIOD or period > MAX_PERIOD:
            raise ConfigurationError(
                code="invalid_period",
                message="period has to be between 1 second and 1 hour",
                details={
                    "min_seconds": MIN_PERIOD.total_seconds(),
                    "max_seconds": MAX_PERIOD.total_seconds(),
                    "actual_seconds": period.total_seconds(),
                },
            )
        if bucket_mode not in BUCKET_MODES:
            raise ConfigurationError(
                code="invalid_bucket_mode",
                message=f"bucket_mode must be one of: {', '.join(BUCKET_MODES)}",
            )
        if strict and getattr(type(store), "add_one_and_get", None) is AbstractCounterStore.add_one_and_get:
            raise ConfigurationError(
                code="store_not_atomic",
                message="strict mode requires a store implementing add_one_and_get",
                details={"backend": type(store).__name__},
            )

        self._max_operations = max_operations
        self._period = period
        self._period_seconds = period.total_seconds()
        self._store = store
        self._bucket_mode = bucket_mode
        self._strict = strict
        self._clock = clock

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"FixedWindowRateLimiter(max_operations={self._max_operations}, "
            f"period={self._period!r}, bucket_mode={self._bucket_mode!r}, strict={self._strict})"
        )

    @property
    def max_operations(self) -> int:
        return self._max_operations

    @property
    def period(self) -> timedelta:
        return self._period

    @property
    def bucket_mode(self) -> str:
        return self._bucket_mode

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def _granularity_seconds(self) -> int:
        """Length of one cyclic bucket: a second, a minute or an hour."""
        if self._period < timedelta(minutes=1):
            return 1
        if self._period < timedelta(hours=1):
            return 60
        return 3600

    def bucket_id(self, now: float | None = None) -> int:
        """Compute the identifier of the window containing ``now``.

        Args:
            now: UNIX time in seconds; defaults to the limiter clock.

        Returns:
            Bucket identifier for the configured mode.
        """
        if now is None:
            now = self._clock()

        if self._bucket_mode == "epoch":
            return int(now // self._period_seconds)

        moment = datetime.fromtimestamp(now, tz=timezone.utc)
        granularity = self._granularity_seconds()
        if granularity == 1:
            return moment.second
        if granularity == 60:
            return moment.minute
        return moment.hour

    def bucket_key(self, op_name: str, now: float | None = None) -> str:
        """Build the store key for ``op_name`` in the window containing ``now``."""
        return f"{op_name}{KEY_SEPARATOR}{self.bucket_id(now)}"

    def seconds_until_reset(self, now: float | None = None) -> int:
        """Return whole seconds until the current bucket rolls over.

        Args:
            now: UNIX time in seconds; defaults to the limiter clock.

        Returns:
            Seconds until the next bucket starts (at least 1).
        """
        if now is None:
            now = self._clock()

        if self._bucket_mode == "epoch":
            window_end = (int(now // self._period_seconds) + 1) * self._period_seconds
        else:
            granularity = self._granularity_seconds()
            window_end = (int(now // granularity) + 1) * granularity
        return max(1, int(math.ceil(window_end - now)))

    def limit_exceeded(self, op_name: str) -> bool:
        """Check the quota of ``op_name`` and record the attempt when allowed.

        The attempt that finds the quota exhausted is not counted.

        Args:
            op_name: Name of the rate-limited operation.

        Returns:
            True if the limit for the current window is already reached,
            False if the operation was recorded and may proceed.

        Raises:
            StoreAccessError: If the store fails to read or increment the key.
                The decision is unavailable; callers choose fail open/closed.
        """
        key = self.bucket_key(op_name)

        if self._strict:
            count = self._add_one(key, and_get=True)
            exceeded = count > self._max_operations
        else:
            exceeded = self._get(key) >= self._max_operations
            if not exceeded:
                self._add_one(key, and_get=False)

        if exceeded:
            logger.debug(
                "rate_limit.window_exhausted",
                extra={"key_hash": hash_key(key), "limit": self._max_operations},
            )
        return exceeded

    def _get(self, key: str) -> int:
        try:
            return self._store.get(key)
        except Exception as exc:
            raise self._store_error(
                code="store_read_failed",
                message=f"failed to get current limit state for key {key}",
                key=key,
                exc=exc,
            ) from exc

    def _add_one(self, key: str, *, and_get: bool) -> int:
        try:
            if and_get:
                return self._store.add_one_and_get(key, self._period)
            self._store.add_one(key, self._period)
            return 0
        except Exception as exc:
            raise self._store_error(
                code="store_write_failed",
                message=f"failed to increase rate limit for key {key}",
                key=key,
                exc=exc,
            ) from exc

    def _store_error(self, *, code: str, message: str, key: str, exc: Exception) -> StoreAccessError:
        logger.warning(
            "store.access_failed",
            extra={
                "key_hash": hash_key(key),
                "error_code": code,
                "error_type": type(exc).__name__,
                "backend": type(self._store).__name__,
            },
        )
        return StoreAccessError(
            code=code,
            message=message,
            details={
                "key_hash": hash_key(key),
                "backend": type(self._store).__name__,
                "cause_type": type(exc).__name__,
            },
            key=key,
            cause=exc,
        )
