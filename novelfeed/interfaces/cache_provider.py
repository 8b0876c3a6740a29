"""Abstract base class for result caches.

Each resource class (listing pages, novels, volumes, chapters) gets its own
cache instance with a fixed TTL and capacity.  Only successful results are
stored; failures are never cached.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value result caches.

    All operations are async so a network-backed store could be dropped in
    without changing callers.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve the value stored under *key*.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* for the cache's configured TTL."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*.  No-op if absent."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""
