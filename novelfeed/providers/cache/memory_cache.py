"""In-memory result cache using cachetools.TTLCache.

One instance per resource class; each has a uniform TTL and an LRU capacity
bound.  Not shared across processes.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from novelfeed.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    name:
        Resource-class label used in log events (``"novel"``, ``"chapter"``).
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for every entry.
    timer:
        Clock used by the underlying ``TTLCache``; tests inject a fake.
    """

    def __init__(
        self,
        name: str = "default",
        max_size: int = 1000,
        ttl: int = 3600,
        timer: Any = None,
    ) -> None:
        self._name = name
        self._ttl = ttl
        if timer is None:
            self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        else:
            self._cache = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)

    @property
    def name(self) -> str:
        return self._name

    @property
    def ttl(self) -> int:
        return self._ttl

    def __len__(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        value = self._cache.get(key)
        if value is not None:
            logger.debug("cache_hit", cache=self._name, key=key)
        else:
            logger.debug("cache_miss", cache=self._name, key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        logger.debug("cache_set", cache=self._name, key=key)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._cache.pop(key, None)
        logger.debug("cache_delete", cache=self._name, key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache

    async def clear(self) -> None:
        self._cache.clear()
