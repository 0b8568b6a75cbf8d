"""
Redis cache for read-only analytics.

Keys look like {prefix}:{module}:g{generation}:{key}. Invalidating a module
increments its generation counter, so older entries are never read again and
age out through their TTL. When Redis is disabled or unreachable every call
falls through to the loader.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import redis
from flask import Flask
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

ANALYTICS_MODULE = 'analytics'


def _encode(value: Any) -> str:
    def default(obj):
        if isinstance(obj, Decimal):
            return {'__decimal__': str(obj)}
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Cannot cache value of type {type(obj).__name__}")
    return json.dumps(value, default=default)


def _decode(raw: str) -> Any:
    def hook(obj):
        if '__decimal__' in obj:
            return Decimal(obj['__decimal__'])
        return obj
    return json.loads(raw, object_hook=hook)


class CacheService:
    """Cache-aside helper over a single Redis connection pool."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.enabled = False
        self.prefix = 'orderdesk'
        self.default_ttl = 60
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', 'orderdesk')
        self.default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)
        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled by configuration")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {redis_url}: {e}. Analytics will not be cached.")
            return

        self.client = client
        self.enabled = True
        logger.info(f"[CACHE] Redis connected: {redis_url}")

    def is_available(self) -> bool:
        if not self.enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def _generation_key(self, module: str) -> str:
        return f"{self.prefix}:{module}:generation"

    def _key(self, module: str, key: str) -> str:
        generation = self.client.get(self._generation_key(module)) or '0'
        return f"{self.prefix}:{module}:g{generation}:{key}"

    def get(self, module: str, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self._key(module, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Read failed for {module}:{key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return _decode(raw)
        except ValueError:
            logger.warning(f"[CACHE] Dropping undecodable entry {module}:{key}")
            return None

    def set(self, module: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.setex(self._key(module, key), ttl or self.default_ttl, _encode(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Write failed for {module}:{key}: {e}")
            return False

    def memoize(self, module: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        cached = self.get(module, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(module, key, value, ttl)
        return value

    def invalidate_module(self, module: str) -> Optional[int]:
        """Start a new generation for the module. Returns it, or None without Redis."""
        if not self.enabled:
            return None
        try:
            generation = self.client.incr(self._generation_key(module))
        except RedisError as e:
            logger.warning(f"[CACHE] Could not invalidate {module}: {e}")
            return None
        logger.debug(f"[CACHE] {module} moved to generation {generation}")
        return generation


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_analytics() -> None:
    """Drop cached analytics after any order, stock or expense mutation."""
    try:
        get_cache().invalidate_module(ANALYTICS_MODULE)
    except RuntimeError:
        logger.debug("[CACHE] Not initialized; nothing to invalidate")
