"""Shared Redis connection for the bet-placement rate limiter.

Coin balances and bet state never live here; PostgreSQL is the only ledger.
Losing Redis degrades rate limiting, not settlement.
"""

import logging

import redis.asyncio as aioredis

from config.settings import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Return the process-wide client, creating it on first use."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            health_check_interval=30,
        )
    return _client


async def ping_redis() -> None:
    """Fail fast at startup when Redis is unreachable."""
    client = await get_redis()
    await client.ping()
    logger.info("Redis reachable at %s", settings.REDIS_URL.rsplit("@", 1)[-1])


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
