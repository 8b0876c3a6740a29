"""Public interface definitions for external collaborators.

Business logic in ``novelfeed.services`` talks to the browser, the cache
and the database only through these abstract base classes.  Concrete
adapters live in ``novelfeed.providers`` and are wired in ``novelfeed.main``;
tests substitute in-memory fakes.

ICacheProvider
    TTL result-cache contract.
INovelRepository
    Novel/volume/chapter persistence contract.
IPageFetcher
    Rendered-page fetch contract.
"""

from novelfeed.interfaces.cache_provider import ICacheProvider
from novelfeed.interfaces.novel_repository import INovelRepository
from novelfeed.interfaces.page_fetcher import IPageFetcher

__all__ = [
    "ICacheProvider",
    "INovelRepository",
    "IPageFetcher",
]
