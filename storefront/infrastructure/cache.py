"""Short-lived read cache for catalog listings.

Redis is used when ``REDIS_URL`` is configured and reachable; otherwise (or
whenever Redis errors) a process-local ``TTLCache`` serves the same role.
Values must be JSON-serializable.
"""

import json
from typing import Any, Optional

import redis
from cachetools import TTLCache

from shared.core import get_logger
from storefront.core_settings import get_settings

logger = get_logger(__name__)


class CatalogCache:
    def __init__(self, redis_url: Optional[str] = None, ttl: int = 60, maxsize: int = 1024):
        self.ttl = ttl
        self.local = TTLCache(maxsize=maxsize, ttl=ttl)
        self.redis: Optional[redis.Redis] = None
        if redis_url:
            try:
                client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
                client.ping()
                self.redis = client
            except redis.RedisError as e:
                logger.warning(f"Redis unavailable, using local catalog cache: {e}")

    def get(self, key: str) -> Any:
        if self.redis:
            try:
                val = self.redis.get(key)
                if val is not None:
                    return json.loads(val)
            except redis.RedisError as e:
                logger.warning(f"Catalog cache read failed for {key}: {e}")
        return self.local.get(key)

    def set(self, key: str, value: Any) -> None:
        if self.redis:
            try:
                self.redis.setex(key, self.ttl, json.dumps(value))
                return
            except redis.RedisError as e:
                logger.warning(f"Catalog cache write failed for {key}: {e}")
        self.local[key] = value

    def invalidate(self, prefix: str = "catalog:") -> None:
        for key in tuple(self.local.keys()):
            if key.startswith(prefix):
                self.local.pop(key, None)
        if self.redis:
            try:
                for key in self.redis.scan_iter(match=f"{prefix}*"):
                    self.redis.delete(key)
            except redis.RedisError as e:
                logger.warning(f"Catalog cache purge failed for {prefix}: {e}")


_catalog_cache: Optional[CatalogCache] = None


def get_catalog_cache() -> CatalogCache:
    global _catalog_cache
    if _catalog_cache is None:
        settings = get_settings()
        _catalog_cache = CatalogCache(settings.REDIS_URL, ttl=settings.CATALOG_CACHE_TTL)
    return _catalog_cache
