"""
Redis cache for derived read models (stock valuation, stock levels).

Derived values are always recomputable from the logs, so the cache only
ever saves work: every miss or Redis failure falls back to the database.
Keys look like ``{prefix}:{view}:{key}``.
"""

import logging
import json
from typing import Any, Optional, Callable

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

# Views dropped after every committed movement, entry or posting
DERIVED_VIEWS = ('valuation', 'stock')


class CacheService:
    """Read-model cache that degrades to a no-op when Redis is unreachable."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self.prefix = 'stockledger'
        self.ttl = 60
        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self.prefix = app.config.get('CACHE_KEY_PREFIX', self.prefix)
        self.ttl = app.config.get('CACHE_DEFAULT_TTL', self.ttl)

        if not app.config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Read-model cache disabled by config")
            return

        url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        client = redis.from_url(url, decode_responses=True, socket_connect_timeout=3, socket_timeout=3)
        try:
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {url} ({e}); serving reads from the database")
            return
        self.client = client
        logger.info(f"[CACHE] Redis connected: {url}")

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def key(self, view: str, key: str) -> str:
        return f"{self.prefix}:{view}:{key}"

    def get(self, view: str, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(self.key(view, key))
        except RedisError as e:
            logger.warning(f"[CACHE] Read of {view}:{key} failed: {e}")
            return None
        return None if raw is None else json.loads(raw)

    def set(self, view: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if self.client is None:
            return False
        try:
            self.client.setex(self.key(view, key), ttl or self.ttl, json.dumps(value))
        except RedisError as e:
            logger.warning(f"[CACHE] Write of {view}:{key} failed: {e}")
            return False
        return True

    def memoize(self, view: str, key: str, loader_fn: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value, or load it from the database and cache it."""
        cached = self.get(view, key)
        if cached is not None:
            return cached
        value = loader_fn()
        self.set(view, key, value, ttl)
        return value

    def invalidate_view(self, view: str) -> int:
        """Unlink every key of ``view``; returns how many were dropped."""
        if self.client is None:
            return 0
        dropped = 0
        try:
            batch = []
            for name in self.client.scan_iter(match=self.key(view, '*'), count=100):
                batch.append(name)
                if len(batch) == 100:
                    dropped += self.client.unlink(*batch)
                    batch = []
            if batch:
                dropped += self.client.unlink(*batch)
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidation of {view} failed: {e}")
        if dropped:
            logger.info(f"[CACHE] Dropped {dropped} cached {view} keys")
        return dropped


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def invalidate_derived() -> None:
    """Drop cached read models after a ledger commit (no-op outside an app)."""
    if _cache_service is None:
        return
    for view in DERIVED_VIEWS:
        _cache_service.invalidate_view(view)
