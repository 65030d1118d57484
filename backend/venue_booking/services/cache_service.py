"""
Redis caching service for the confirmation log listing.

CACHING STRATEGY
================

What we cache:
  - The serialized confirmation log snapshot under a single key

Why:
  - The log is read by every admin dashboard refresh
  - It only changes when a booking is confirmed

Invalidation strategy:
  - On every successful confirm: bump a generation counter and delete the key
  - A reader only stores its snapshot if the generation it read before
    querying is still current (WATCH on the counter)
  - TTL-based expiry as safety net (5 minutes)

Redis is advisory: when it is disabled or unreachable every call degrades to
a no-op / cache miss and the database is read directly.
"""

import json
from typing import Optional

import redis.asyncio as redis

from venue_booking.core.config import get_settings
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

CONFIRMATION_LOG_KEY = "venue:confirmation_log"
CONFIRMATION_LOG_GENERATION_KEY = "venue:confirmation_log:generation"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
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


async def get_confirmation_log_generation() -> Optional[str]:
    """Current log generation; read it before querying the database."""
    client = await get_redis()
    if not client:
        return None

    try:
        return await client.get(CONFIRMATION_LOG_GENERATION_KEY)
    except Exception as e:
        logger.error("cache_get_error", key=CONFIRMATION_LOG_GENERATION_KEY, error=str(e))
        return None


async def get_cached_confirmation_log() -> Optional[list[dict]]:
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(CONFIRMATION_LOG_KEY)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=CONFIRMATION_LOG_KEY)
            return json.loads(data)
        logger.debug("cache_miss", key=CONFIRMATION_LOG_KEY)
    except Exception as e:
        logger.error("cache_get_error", key=CONFIRMATION_LOG_KEY, error=str(e))

    return None


async def set_cached_confirmation_log(entries: list[dict], generation: Optional[str]) -> bool:
    """
    Store a snapshot read under `generation`. Skipped when a confirm bumped the
    generation since then, so a slow reader cannot re-cache a stale log.
    """
    client = await get_redis()
    if not client:
        return False

    try:
        async with client.pipeline(transaction=True) as pipe:
            await pipe.watch(CONFIRMATION_LOG_GENERATION_KEY)
            current = await pipe.get(CONFIRMATION_LOG_GENERATION_KEY)
            if current != generation:
                await pipe.unwatch()
                logger.info("cache_set_skipped", key=CONFIRMATION_LOG_KEY, read=generation, current=current)
                return False
            pipe.multi()
            pipe.setex(CONFIRMATION_LOG_KEY, settings.REDIS_CACHE_TTL, json.dumps(entries, default=str))
            await pipe.execute()
    except redis.WatchError:
        logger.info("cache_set_skipped", key=CONFIRMATION_LOG_KEY, read=generation, reason="generation_changed")
        return False
    except Exception as e:
        logger.error("cache_set_error", key=CONFIRMATION_LOG_KEY, error=str(e))
        return False

    logger.debug("cache_set", key=CONFIRMATION_LOG_KEY, ttl=settings.REDIS_CACHE_TTL, entries=len(entries))
    return True


async def invalidate_confirmation_log_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(CONFIRMATION_LOG_GENERATION_KEY)
            pipe.delete(CONFIRMATION_LOG_KEY)
            generation, deleted = await pipe.execute()
        logger.info("cache_invalidated", key=CONFIRMATION_LOG_KEY, keys_deleted=deleted, generation=generation)
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
