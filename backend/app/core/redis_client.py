import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

# Only the redis lock backend talks to Redis; with LOCK_BACKEND=local this stays None.
redis_client: redis.Redis | None = None


async def init_redis() -> None:
    global redis_client
    if settings.LOCK_BACKEND != "redis":
        logger.info("Lock backend is %s; not connecting to Redis", settings.LOCK_BACKEND)
        return
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


async def redis_ready() -> bool:
    """Whether the lock store answers a PING."""
    if redis_client is None:
        return False
    try:
        return bool(await redis_client.ping())
    except RedisError as exc:
        logger.warning("Redis ping failed: %r", exc)
        return False


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
