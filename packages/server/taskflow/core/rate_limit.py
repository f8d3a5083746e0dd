"""
Fixed-window rate limiting keyed by client address, backed by Redis.

Each (policy, client) pair gets one counter per window. The first hit in a
window sets the key's TTL; the window resets when the key expires.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from fastapi import Request

from taskflow.core.config import RateLimitPolicy, get_settings
from taskflow.core.errors import RateLimitError
from taskflow.core.redis import get_redis

log = structlog.get_logger()
settings = get_settings()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """Counts hits per key in Redis with INCR + EXPIRE."""

    def __init__(self, name: str, policy: RateLimitPolicy):
        self.name = name
        self.policy = policy

    def _key(self, client: str) -> str:
        return f"ratelimit:{self.name}:{client}"

    async def hit(self, client: str) -> RateLimitResult:
        redis = await get_redis()
        key = self._key(client)
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, self.policy.window_seconds)
            ttl = self.policy.window_seconds
        else:
            ttl = await redis.ttl(key)
            if ttl < 0:
                # Counter lost its TTL (e.g. crash between INCR and EXPIRE).
                await redis.expire(key, self.policy.window_seconds)
                ttl = self.policy.window_seconds

        remaining = max(0, self.policy.limit - count)
        return RateLimitResult(
            allowed=count <= self.policy.limit,
            remaining=remaining,
            retry_after=max(1, ttl),
        )


def client_address(request: Request) -> str:
    """Peer address of the connection.

    Forwarded headers are client-controlled and ignored here; behind a proxy,
    run uvicorn with --proxy-headers and --forwarded-allow-ips so the peer is
    rewritten before it reaches the app.
    """
    if request.client:
        return request.client.host
    return "unknown"


def rate_limit(name: str, policy: RateLimitPolicy, message: str):
    """Build a FastAPI dependency enforcing `policy` for the route."""
    limiter = FixedWindowRateLimiter(name, policy)

    async def _dependency(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return
        client = client_address(request)
        result = await limiter.hit(client)
        if not result.allowed:
            log.warning("rate_limit.exceeded", policy=name, client=client)
            raise RateLimitError(message, retry_after=result.retry_after)

    return _dependency


auth_rate_limit = rate_limit(
    "auth",
    settings.rate_limit_auth,
    "Too many authentication attempts. Please try again later.",
)
invite_rate_limit = rate_limit(
    "invite",
    settings.rate_limit_invite,
    "Too many invitation requests. Please try again later.",
)
api_rate_limit = rate_limit(
    "api",
    settings.rate_limit_api,
    "Too many requests, please try again later.",
)
