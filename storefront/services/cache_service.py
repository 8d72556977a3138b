"""
Product Listing Cache.

Process-local TTL cache in front of the public product listing. Entries
expire after PRODUCT_CACHE_TTL seconds and the oldest entry is evicted once
PRODUCT_CACHE_MAX entries are stored.

Writes to the catalog do NOT invalidate entries: a public listing can lag a
product update by up to one TTL.

Usage:
    cache = get_cache()

    data = await cache.get_product_list(params)
    if data is None:
        data = ...
        await cache.set_product_list(params, data)
"""
import json
import hashlib
from collections import OrderedDict
from typing import Any, Optional
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

from storefront.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache with TTL expiry and a capacity bound.

    Note: not shared across server processes.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self._cache: "OrderedDict[str, tuple[Any, datetime]]" = OrderedDict()
        self._max_entries = max_entries
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return value
                else:
                    del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache.pop(key, None)
            self._cache[key] = (value, expires_at)
            if self._max_entries:
                while len(self._cache) > self._max_entries:
                    evicted, _ = self._cache.popitem(last=False)
                    logger.debug(f"Cache full, evicted {evicted}")
            return True


class CacheService:
    """
    Namespaced cache. Keys follow the format:

        {namespace}:{resource_type}:{identifier}

    Example:
        storefront:products:list:3f9c2a1b7d4e
    """

    def __init__(self, backend: CacheBackend, namespace: str = "storefront"):
        self._backend = backend
        self._namespace = namespace

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await self._backend.get(self._make_key(key))

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self._backend.set(self._make_key(key), value, ttl)

    # ==================== Product List Cache ====================

    def _product_list_key(self, params_hash: str) -> str:
        return f"products:list:{params_hash}"

    @staticmethod
    def hash_params(params: dict) -> str:
        """Create hash from query parameters."""
        sorted_params = sorted(params.items())
        param_str = json.dumps(sorted_params, sort_keys=True, default=str)
        return hashlib.md5(param_str.encode()).hexdigest()[:12]

    async def get_product_list(self, params: dict) -> Optional[dict]:
        """Get cached product list page."""
        return await self.get(self._product_list_key(self.hash_params(params)))

    async def set_product_list(
        self,
        params: dict,
        data: dict,
        ttl: Optional[int] = None
    ) -> bool:
        """Cache product list page."""
        ttl = ttl or settings.PRODUCT_CACHE_TTL
        return await self.set(self._product_list_key(self.hash_params(params)), data, ttl)


# Singleton instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        backend = InMemoryCache(max_entries=settings.PRODUCT_CACHE_MAX)
        _cache_instance = CacheService(backend)
        logger.info(
            f"Cache initialized with in-memory backend "
            f"(ttl={settings.PRODUCT_CACHE_TTL}s, max={settings.PRODUCT_CACHE_MAX})"
        )

    return _cache_instance
