"""
Redis connection shared by the token revocation list and the health check.
"""

import logging

import redis.asyncio as redis
from backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency returning the module-level client."""
    return redis_client


async def ping_redis(client) -> bool:
    """True when the revocation store answers; a down store only degrades logout."""
    try:
        return bool(await client.ping())
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
        return False
