"""Unit tests for the Redis fixed-window rate limiter."""

from unittest.mock import AsyncMock, patch

import pytest

from src.fm_common.errors import RateLimitError
from src.fm_gateway.middleware.rate_limit import FixedWindowRateLimiter

_GET_REDIS = "src.fm_gateway.middleware.rate_limit.get_redis"


def _redis(count: int) -> AsyncMock:
    redis = AsyncMock()
    redis.incr.return_value = count
    return redis


class TestKey:
    def test_same_window_same_key(self) -> None:
        limiter = FixedWindowRateLimiter("bets", 3, window_seconds=60)
        assert limiter.key_for("u1", 120.0) == limiter.key_for("u1", 179.9)

    def test_next_window_new_key(self) -> None:
        limiter = FixedWindowRateLimiter("bets", 3, window_seconds=60)
        assert limiter.key_for("u1", 179.9) != limiter.key_for("u1", 180.0)

    def test_key_layout(self) -> None:
        limiter = FixedWindowRateLimiter("bets", 3, window_seconds=60)
        assert limiter.key_for("u1", 125.0) == "ratelimit:bets:u1:2"


class TestHit:
    async def test_first_hit_sets_expiry(self) -> None:
        redis = _redis(1)
        with patch(_GET_REDIS, AsyncMock(return_value=redis)):
            assert await FixedWindowRateLimiter("bets", 3).hit("u1") == 1
        redis.expire.assert_awaited_once()
        assert redis.expire.call_args.args[1] == 60

    async def test_later_hit_keeps_expiry(self) -> None:
        redis = _redis(2)
        with patch(_GET_REDIS, AsyncMock(return_value=redis)):
            await FixedWindowRateLimiter("bets", 3).hit("u1")
        redis.expire.assert_not_awaited()

    async def test_at_limit_allowed(self) -> None:
        with patch(_GET_REDIS, AsyncMock(return_value=_redis(3))):
            assert await FixedWindowRateLimiter("bets", 3).hit("u1") == 3

    async def test_over_limit_raises(self) -> None:
        with patch(_GET_REDIS, AsyncMock(return_value=_redis(4))):
            with pytest.raises(RateLimitError):
                await FixedWindowRateLimiter("bets", 3).hit("u1")

    async def test_dependency_counts_caller(self) -> None:
        redis = _redis(1)
        with patch(_GET_REDIS, AsyncMock(return_value=redis)):
            await FixedWindowRateLimiter("bets", 3)("u1")
        assert redis.incr.call_args.args[0].startswith("ratelimit:bets:u1:")
