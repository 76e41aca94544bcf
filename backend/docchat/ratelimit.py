"""Rate limiting utilities."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import redis.asyncio as redis

from backend.docchat.db.context import RequestContext


@dataclass(frozen=True)
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Create rate limit key from context and bucket (e.g. "messages")."""
    return f"{ctx.user_id}:{bucket}"


def _window_start(now: datetime, window_seconds: int) -> int:
    return int(now.timestamp() / window_seconds) * window_seconds


class RedisRateLimiter:
    """Redis-based rate limiter using INCR + EXPIRE pattern."""

    def __init__(self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            redis_client: Async Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Uses Redis INCR + EXPIRE for atomic counting.
        """
        # Use a window-aligned key
        redis_key = f"ratelimit:{key}:{_window_start(now, self._window_seconds)}"

        count = await self._redis.incr(redis_key)

        # Set expiry on first request
        if count == 1:
            await self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            ttl = await self._redis.ttl(redis_key)
            return RetryAfter(seconds=max(1, ttl))

        return None

    async def close(self) -> None:
        await self._redis.aclose()


class InMemoryRateLimiter:
    """Fixed-window limiter for a single process (dev/tests, no Redis configured)."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._counts: dict[str, int] = {}

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        window_start = _window_start(now, self._window_seconds)
        window_key = f"{key}:{window_start}"

        # Drop counters from earlier windows
        suffix = f":{window_start}"
        for stale in [k for k in self._counts if not k.endswith(suffix)]:
            del self._counts[stale]

        self._counts[window_key] = self._counts.get(window_key, 0) + 1
        if self._counts[window_key] > self._max_requests:
            remaining = window_start + self._window_seconds - int(now.timestamp())
            return RetryAfter(seconds=max(1, remaining))

        return None

    async def close(self) -> None:
        return None


def build_rate_limiter(redis_url: str | None, max_requests: int) -> RedisRateLimiter | InMemoryRateLimiter:
    """Redis limiter when a URL is configured, in-memory otherwise."""
    if redis_url:
        return RedisRateLimiter(redis.from_url(redis_url, decode_responses=True), max_requests)
    return InMemoryRateLimiter(max_requests)
