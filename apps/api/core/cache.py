"""
Active-template cache (Redis).

Every first open of a day reads the active template for the caller's
role, so that lookup is cached for CACHE_TTL_ACTIVE_TEMPLATE seconds.
Activation, creation and reconciliation drop the entry for the role they
touched.

Redis is optional. With CACHE_ENABLED off, or the server unreachable,
reads miss and writes are skipped; callers go to the database.
"""
import json
import logging
import time
from typing import Any, Dict, Optional
import redis
from redis.exceptions import RedisError
from core.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "daybook:active_template"

_client: Optional[redis.Redis] = None
# After a failed connect, don't retry until this monotonic time.
_retry_after: float = 0.0
_RECONNECT_BACKOFF_S = 30.0


def get_redis_client() -> Optional[redis.Redis]:
    """Shared client, or None when caching is off or Redis is down."""
    global _client, _retry_after

    if not settings.CACHE_ENABLED:
        return None
    if _client is not None:
        return _client
    if time.monotonic() < _retry_after:
        return None

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
    except RedisError as e:
        logger.warning(f"Redis unavailable: {e}. Template cache off for {_RECONNECT_BACKOFF_S:.0f}s.")
        _retry_after = time.monotonic() + _RECONNECT_BACKOFF_S
        return None

    _client = client
    logger.info("Redis connection established")
    return _client


def active_template_key(role: str) -> str:
    return f"{KEY_PREFIX}:{role}"


def get_cached_active_template(role: str) -> Optional[Dict[str, Any]]:
    client = get_redis_client()
    if client is None:
        return None
    try:
        raw = client.get(active_template_key(role))
    except RedisError as e:
        logger.warning(f"Template cache read failed for '{role}': {e}")
        return None
    return json.loads(raw) if raw else None


def cache_active_template(role: str, snapshot: Dict[str, Any]) -> bool:
    client = get_redis_client()
    if client is None:
        return False
    try:
        # default=str: snapshots carry UUID and datetime values
        client.setex(active_template_key(role), settings.CACHE_TTL_ACTIVE_TEMPLATE, json.dumps(snapshot, default=str))
    except RedisError as e:
        logger.warning(f"Template cache write failed for '{role}': {e}")
        return False
    return True


def invalidate_active_template_cache(role: Optional[str] = None) -> int:
    """Drop the cached lookup for one role, or for every role. Returns keys removed."""
    client = get_redis_client()
    if client is None:
        return 0
    try:
        if role:
            return client.delete(active_template_key(role))
        keys = list(client.scan_iter(match=f"{KEY_PREFIX}:*"))
        return client.delete(*keys) if keys else 0
    except RedisError as e:
        logger.warning(f"Template cache invalidation failed: {e}")
        return 0
