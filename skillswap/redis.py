"""Redis connection management and the refresh-token store."""

import redis.asyncio as aioredis

REFRESH_KEY_PREFIX = "refresh:"

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """Get the shared Redis connection. Must be initialized first via init_redis()."""
    if _redis is None:
        raise RuntimeError("Redis not initialized, app not started")
    return _redis


async def init_redis(url: str = "redis://localhost:6379/0") -> aioredis.Redis:
    """Connect and ping the shared Redis instance."""
    global _redis
    _redis = aioredis.from_url(url, decode_responses=True)
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def store_refresh_token(redis: aioredis.Redis, user_id: str, token: str, ttl_seconds: int) -> None:
    """Remember the single live refresh token for a user (newest login wins)."""
    await redis.set(f"{REFRESH_KEY_PREFIX}{user_id}", token, ex=ttl_seconds)


async def refresh_token_matches(redis: aioredis.Redis, user_id: str, token: str) -> bool:
    stored = await redis.get(f"{REFRESH_KEY_PREFIX}{user_id}")
    return stored is not None and stored == token


async def revoke_refresh_token(redis: aioredis.Redis, user_id: str) -> None:
    await redis.delete(f"{REFRESH_KEY_PREFIX}{user_id}")
