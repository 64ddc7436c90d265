import json
import logging

import redis

from dependencies import get_redis_client, IMPACT_CACHE_TTL_SECONDS

IMPACT_CACHE_KEY = "impact_data"


def get_cached_impact_data():
    """Returns the cached impact dict, or None on a miss or when Redis is down."""
    redis_client = get_redis_client()
    if not redis_client:
        return None
    try:
        cached = redis_client.get(IMPACT_CACHE_KEY)
    except redis.exceptions.RedisError as e:
        logging.warning(f"Impact cache read failed: {e}")
        return None
    return json.loads(cached) if cached else None


def cache_impact_data(data: dict):
    redis_client = get_redis_client()
    if not redis_client:
        return
    try:
        redis_client.set(IMPACT_CACHE_KEY, json.dumps(data), ex=IMPACT_CACHE_TTL_SECONDS)
    except redis.exceptions.RedisError as e:
        logging.warning(f"Impact cache write failed: {e}")


def invalidate_impact_cache():
    """Deletes the impact statistics from the Redis cache."""
    redis_client = get_redis_client()
    if not redis_client:
        return
    try:
        redis_client.delete(IMPACT_CACHE_KEY)
    except redis.exceptions.RedisError as e:
        logging.warning(f"Impact cache invalidation failed: {e}")
