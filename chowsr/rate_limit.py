from __future__ import annotations

import time
from collections.abc import Callable

from fastapi import HTTPException, Request

from .config import DEFAULT_APP_CONFIG


class RateLimiter:
    """Fixed-window request counter per key.

    A key's window starts with its first request and resets on the first
    request after it expires. Nothing is swept in the background.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.clock = clock
        self._buckets: dict[str, dict[str, float]] = {}

    def hit(self, key: str) -> bool:
        """Count one request for ``key``. Returns False when it is over the limit."""
        now = self.clock()
        bucket = self._buckets.get(key)
        if bucket is None or now > bucket["reset_at"]:
            self._buckets[key] = {"count": 1, "reset_at": now + self.window_seconds}
            return True
        if bucket["count"] >= self.max_requests:
            return False
        bucket["count"] += 1
        return True

    def reset(self) -> None:
        self._buckets.clear()


restaurant_limiter = RateLimiter(
    window_seconds=DEFAULT_APP_CONFIG.rate_limit_window,
    max_requests=DEFAULT_APP_CONFIG.rate_limit_max,
)


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def limit_restaurant_lookups(request: Request) -> None:
    """Raise 429 once a client exceeds its restaurant lookup allowance."""
    if not restaurant_limiter.hit(client_key(request)):
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a moment and try again.",
        )
