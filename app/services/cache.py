"""
Redis cache for event rating summaries.

Only the rating summary is cached: it is read on every event page but only
changes when a review is written or moderated. Keys live under
``event:{id}:*`` so deleting an event can drop all of them at once.

Every helper degrades to a no-op when caching is disabled or Redis cannot
be reached; the database stays the source of truth.
"""

import json
import logging
from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from app.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Return the shared Redis client, connecting on first use.

    Returns None when caching is turned off or the server does not answer
    a ping; the next call tries again.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    if not settings.cache_enabled:
        return None

    client = redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    try:
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis unavailable at {settings.redis_url}: {e}")
        return None

    logger.info("Connected to Redis cache")
    _redis_client = client
    return _redis_client


def close_redis_connection() -> None:
    global _redis_client
    if _redis_client is None:
        return
    _redis_client.close()
    _redis_client = None
    logger.info("Redis connection closed")


def rating_cache_key(event_id: int) -> str:
    return f"event:{event_id}:rating"


def cache_get(key: str) -> Optional[Any]:
    """Return the decoded JSON value stored at ``key``, or None on miss/error."""
    client = get_redis_client()
    if client is None:
        return None

    try:
        raw = client.get(key)
    except RedisError as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None

    if raw is None:
        logger.debug(f"Cache miss: {key}")
        return None

    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding undecodable cache entry {key}")
        cache_delete(key)
        return None


def cache_set(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    client = get_redis_client()
    if client is None:
        return False

    ttl = ttl or get_settings().cache_ttl
    try:
        # datetimes in rating summaries serialize through str()
        client.setex(key, ttl, json.dumps(value, default=str))
    except (RedisError, TypeError, ValueError) as e:
        logger.warning(f"Cache write failed for {key}: {e}")
        return False
    return True


def cache_delete(*keys: str) -> int:
    client = get_redis_client()
    if client is None or not keys:
        return 0

    try:
        return client.delete(*keys)
    except RedisError as e:
        logger.warning(f"Cache delete failed for {keys}: {e}")
        return 0


def invalidate_rating_cache(event_id: int) -> None:
    """Forget the cached summary after a recalculation."""
    cache_delete(rating_cache_key(event_id))


def invalidate_event_cache(event_id: int) -> int:
    """
    Drop every key cached for an event.

    Uses SCAN so a large keyspace does not block the server.

    Returns:
        Number of keys removed
    """
    client = get_redis_client()
    if client is None:
        return 0

    try:
        keys = list(client.scan_iter(match=f"event:{event_id}:*", count=100))
    except RedisError as e:
        logger.warning(f"Cache scan failed for event {event_id}: {e}")
        return 0

    removed = cache_delete(*keys)
    if removed:
        logger.debug(f"Invalidated {removed} cache keys for event {event_id}")
    return removed


def get_cache_stats() -> dict:
    """Cache status block for the health endpoint."""
    if not get_settings().cache_enabled:
        return {"status": "disabled"}

    client = get_redis_client()
    if client is None:
        return {"status": "disconnected"}

    try:
        info = client.info("stats")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
            "keys": client.dbsize(),
        }
    except RedisError:
        return {"status": "error"}
