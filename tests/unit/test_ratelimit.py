"""Tests for rate limiting."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from backend.docchat.db.context import RequestContext
from backend.docchat.ratelimit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    RetryAfter,
    build_rate_limiter,
    make_rate_limit_key,
)

# Aligned to a 60s window boundary so offsets stay in one window
WINDOW_START = datetime.fromtimestamp(1_700_000_040)


def test_make_rate_limit_key_is_per_user_and_bucket() -> None:
    user_id = uuid.UUID("00000000-0000-0000-0000-000000000002")
    ctx = RequestContext(user_id=user_id)

    assert make_rate_limit_key(ctx, "messages") == f"{user_id}:messages"


@pytest.mark.asyncio
async def test_in_memory_allows_under_quota() -> None:
    limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60)

    for i in range(5):
        assert await limiter.check_quota("k", WINDOW_START + timedelta(seconds=i)) is None


@pytest.mark.asyncio
async def test_in_memory_blocks_over_quota_with_retry_after() -> None:
    limiter = InMemoryRateLimiter(max_requests=3, window_seconds=60)

    for _ in range(3):
        assert await limiter.check_quota("k", WINDOW_START) is None

    retry_after = await limiter.check_quota("k", WINDOW_START + timedelta(seconds=20))
    assert retry_after == RetryAfter(seconds=40)


@pytest.mark.asyncio
async def test_in_memory_resets_after_window() -> None:
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

    assert await limiter.check_quota("k", WINDOW_START) is None
    assert await limiter.check_quota("k", WINDOW_START) is not None
    assert await limiter.check_quota("k", WINDOW_START + timedelta(seconds=61)) is None


@pytest.mark.asyncio
async def test_in_memory_keys_are_independent() -> None:
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

    assert await limiter.check_quota("a", WINDOW_START) is None
    assert await limiter.check_quota("b", WINDOW_START) is None


@pytest.mark.asyncio
async def test_redis_limiter_sets_expiry_on_first_request() -> None:
    redis_client = AsyncMock()
    redis_client.incr.return_value = 1
    limiter = RedisRateLimiter(redis_client, max_requests=2, window_seconds=60)

    assert await limiter.check_quota("u:messages", WINDOW_START) is None

    redis_key = f"ratelimit:u:messages:{int(WINDOW_START.timestamp())}"
    redis_client.incr.assert_awaited_once_with(redis_key)
    redis_client.expire.assert_awaited_once_with(redis_key, 60)


@pytest.mark.asyncio
async def test_redis_limiter_over_quota_uses_ttl() -> None:
    redis_client = AsyncMock()
    redis_client.incr.return_value = 3
    redis_client.ttl.return_value = 17
    limiter = RedisRateLimiter(redis_client, max_requests=2, window_seconds=60)

    assert await limiter.check_quota("u:messages", WINDOW_START) == RetryAfter(seconds=17)
    redis_client.expire.assert_not_awaited()


def test_build_rate_limiter_without_redis_is_in_memory() -> None:
    assert isinstance(build_rate_limiter(None, 10), InMemoryRateLimiter)


def test_build_rate_limiter_with_redis_url() -> None:
    limiter = build_rate_limiter("redis://localhost:6379/0", 10)

    assert isinstance(limiter, RedisRateLimiter)
