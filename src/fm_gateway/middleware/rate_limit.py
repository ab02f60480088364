"""Redis fixed-window rate limiting, applied as a route dependency.

Rules:
  - Bet placement: RATE_LIMIT_BETS_PER_MINUTE req/min/user

Counting:
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window)
    if count > limit:
        raise RateLimitError()

Key pattern: "ratelimit:{group}:{user_id}:{window_index}". The window index in
the key means a lost EXPIRE can never pin a user at the limit forever.
"""

import logging
import time
from typing import Annotated

from fastapi import Depends

from config.settings import settings
from src.fm_common.errors import RateLimitError
from src.fm_common.redis_client import get_redis
from src.fm_gateway.auth.dependencies import get_current_user_id

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    def __init__(self, group: str, limit: int, window_seconds: int = 60) -> None:
        self._group = group
        self._limit = limit
        self._window = window_seconds

    def key_for(self, user_id: str, now: float) -> str:
        return f"ratelimit:{self._group}:{user_id}:{int(now) // self._window}"

    async def hit(self, user_id: str) -> int:
        """Count one request; raise RateLimitError once over the limit."""
        redis = await get_redis()
        key = self.key_for(user_id, time.time())
        count = int(await redis.incr(key))
        if count == 1:
            await redis.expire(key, self._window)
        if count > self._limit:
            logger.warning("Rate limit hit: group=%s user=%s count=%d", self._group, user_id, count)
            raise RateLimitError()
        return count

    async def __call__(self, user_id: Annotated[str, Depends(get_current_user_id)]) -> None:
        await self.hit(user_id)


bet_placement_limiter = FixedWindowRateLimiter("bets", settings.RATE_LIMIT_BETS_PER_MINUTE)
