"""
Redis client utilities for basecore.

Provides a lazily initialized Redis client and small JSON helpers for
key/value blobs.
"""

import functools
import json
import logging
from typing import Any

import redis

from basecore.settings import get_settings

logger = logging.getLogger(__name__)


@functools.lru_cache()
def get_redis_client() -> redis.Redis:
    """
    Get Redis client (cached).

    This function lazily initializes the Redis client to avoid import-time connections.
    """
    return redis.from_url(get_settings().REDIS_URL, decode_responses=True)


def get_json(key: str, client: Any = None) -> Any | None:
    """
    Read a JSON value stored under ``key``.

    Returns None when the key is missing or the stored text is not valid JSON.
    """
    if client is None:
        client = get_redis_client()
    raw = client.get(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable JSON value", extra={"key": key})
        return None


def set_json(key: str, value: Any, client: Any = None) -> None:
    """Store ``value`` as JSON under ``key``."""
    if client is None:
        client = get_redis_client()
    client.set(key, json.dumps(value, ensure_ascii=False, default=str))


def delete_key(key: str, client: Any = None) -> int:
    """Delete ``key``. Returns the number of keys removed (0 or 1)."""
    if client is None:
        client = get_redis_client()
    return client.delete(key)
