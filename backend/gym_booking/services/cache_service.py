"""
Redis caching service for class schedule listings.

CACHING STRATEGY
================

What we cache:
  - Class listing responses (paginated, JSON-serialized, with spot counts)
  - Cache key pattern: "classes:list:page={page}&size={size}&upcoming={upcoming}"

Invalidation strategy:
  - On booking or cancellation: spot counts changed, delete all list keys
  - On class creation: the listing changed, delete all list keys
  - TTL-based expiry as safety net (5 minutes)

  All list keys share the "classes:list:" prefix so they can be SCANned and
  deleted together.

Why NOT cache single classes:
  - The class detail view is what members check right before booking; it
    must show live availability
  - The booking path never reads through the cache
"""

import json
from typing import Optional

import redis.asyncio as redis
from gym_booking.core.config import get_settings
from gym_booking.core.logging import get_logger
from gym_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

CLASS_LIST_PREFIX = "classes:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or unreachable."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_class_list_key(page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{CLASS_LIST_PREFIX}page={page}&size={page_size}&upcoming={upcoming_only}"


async def get_cached_classes(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    """Retrieve cached class list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_class_list_key(page, page_size, upcoming_only)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_classes(
    page: int,
    page_size: int,
    upcoming_only: bool,
    data: dict,
) -> None:
    """Cache class list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_class_list_key(page, page_size, upcoming_only)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_class_cache() -> None:
    """Invalidate all cached class listings."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{CLASS_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
