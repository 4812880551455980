"""Fixed-window rate limiting core."""

from oplimit.limiter.fixed_window import (
    MAX_PERIOD,
    MIN_PERIOD,
    FixedWindowRateLimiter,
)

__all__ = ["FixedWindowRateLimiter", "MAX_PERIOD", "MIN_PERIOD"]
