# services/redis.py
import redis.asyncio as redis
from core.config import REDIS_URL

_pool: redis.Redis | None = None


def get_redis() -> redis.Redis | None:
    """Shared client, or None when REDIS_URL is not configured."""
    global _pool
    if not REDIS_URL:
        return None
    if _pool is None:
        _pool = redis.from_url(REDIS_URL, decode_responses=True)
    return _pool


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
