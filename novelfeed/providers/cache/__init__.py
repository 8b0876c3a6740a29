"""Cache providers.

In-memory TTL caches for parsed pages, one per resource class, so repeated
reads of the same novel, volume, chapter or listing within the TTL never
touch the browser.
"""

from novelfeed.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
