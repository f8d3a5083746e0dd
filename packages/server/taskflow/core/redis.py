"""
Process-wide Redis client.

Holds the JWT revocation list and the rate-limit counters. The client is
created on first use and shared by every request.
"""

from __future__ import annotations

from typing import Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from taskflow.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()

_client: Optional[Redis] = None


async def get_redis() -> Redis:
    global _client
    if _client is None:
        _client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            health_check_interval=30,
        )
        log.info("redis.client_created")
    return _client


async def ping_redis() -> bool:
    """Readiness probe. False instead of raising when Redis is unreachable."""
    try:
        redis = await get_redis()
        return bool(await redis.ping())
    except (RedisError, OSError) as exc:
        log.error("redis.unavailable", error=str(exc))
        return False


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
