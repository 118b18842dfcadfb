"""Redis connection for the session revocation list."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import get_settings

settings = get_settings()

REVOKED_JWT_PREFIX = "mangroves:jwt:revoked:"

_redis_client: redis.Redis | None = None


def revoked_jwt_key(jti: str) -> str:
    return f"{REVOKED_JWT_PREFIX}{jti}"


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
