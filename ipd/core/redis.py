# ipd/core/redis.py
"""
Redis connection and caching utilities.
Redis is used for:
- Bed occupancy statistics
- The IP dashboard summary

The app should boot even if Redis is unavailable (degraded mode).
"""

import json
import logging
from functools import lru_cache
from typing import Any, Optional

import redis

from ipd.core.config import get_settings

logger = logging.getLogger(__name__)

BED_STATS_KEY = "ipd:beds:stats"
DASHBOARD_KEY = "ipd:dashboard"


@lru_cache
def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client instance.
    Returns None if Redis is not configured or unavailable.
    """
    settings = get_settings()

    if not settings.redis_url:
        logger.warning("REDIS_URL not set. Redis features will be disabled.")
        return None

    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.info("Redis connection established successfully.")
        return client
    except Exception as e:
        logger.warning("Failed to connect to Redis: %s. Running in degraded mode (no caching).", e)
        return None


def cache_get(key: str) -> Optional[str]:
    """Get value from cache. Returns None if Redis unavailable or key not found."""
    client = get_redis_client()
    if not client:
        return None
    try:
        return client.get(key)
    except Exception as e:
        logger.warning("Redis GET error for key '%s': %s", key, e)
        return None


def cache_set(key: str, value: str, ttl: int = 60) -> bool:
    """Set value in cache with TTL (seconds). Returns False if Redis unavailable."""
    client = get_redis_client()
    if not client:
        return False
    try:
        client.setex(key, ttl, value)
        return True
    except Exception as e:
        logger.warning("Redis SET error for key '%s': %s", key, e)
        return False


def cache_delete(*keys: str) -> bool:
    """Delete keys from cache. Returns False if Redis unavailable."""
    client = get_redis_client()
    if not client:
        return False
    try:
        client.delete(*keys)
        return True
    except Exception as e:
        logger.warning("Redis DELETE error for keys %s: %s", keys, e)
        return False


def cache_get_json(key: str) -> Any | None:
    cached = cache_get(key)
    if not cached:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Cache entry '%s' corrupted. Recomputing.", key, exc_info=True)
        return None


def cache_set_json(key: str, value: Any, ttl: int | None = None) -> bool:
    if ttl is None:
        ttl = get_settings().stats_cache_ttl_seconds
    return cache_set(key, json.dumps(value, default=str), ttl)


def invalidate_occupancy_cache() -> None:
    """Drop cached bed/dashboard figures after bed or allocation changes."""
    cache_delete(BED_STATS_KEY, DASHBOARD_KEY)
