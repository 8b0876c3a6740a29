"""In-flight request deduplication and cache-key derivation.

Two callers asking for the same logical resource at (nearly) the same time
share one underlying fetch.  :class:`InflightDeduplicator` keeps a map from
key to the running future:

- a hit returns the existing future to the new caller, whether it is still
  pending or already resolved but inside its grace window;
- success schedules eviction ``grace`` seconds later, so duplicate calls
  arriving right after completion still share the result;
- failure evicts immediately, so an error never poisons later attempts.

Eviction is by identity: a timer only removes the key when it still maps to
the future that scheduled it.  A newer entry reusing the key is left alone.

The key functions at the bottom must stay byte-stable, since listing caches
are shared between callers that build their filters in different orders.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from novelfeed.utils.logging import get_logger

_T = TypeVar("_T")

_DEFAULT_GRACE = 2.0

_logger: structlog.BoundLogger = get_logger(__name__)


class InflightDeduplicator(Generic[_T]):
    """Share one in-flight future between concurrent callers of the same key.

    Parameters
    ----------
    name:
        Label used in log events (e.g. ``"get_novel"``).
    grace:
        Seconds a successful result stays shared after it resolves.
    """

    def __init__(self, name: str, grace: float = _DEFAULT_GRACE) -> None:
        self._name = name
        self._grace = grace
        self._inflight: dict[str, asyncio.Future[_T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: str, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Return the shared result for *key*, invoking *factory* only on a miss."""
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(factory())
            self._inflight[key] = future
            future.add_done_callback(lambda done: self._on_done(key, done))
        else:
            _logger.debug("inflight_hit", memo=self._name, key=key)

        # shield: one caller's cancellation must not cancel the shared work.
        return await asyncio.shield(future)

    def forget(self, key: str) -> None:
        """Drop *key* so the next call starts a fresh invocation."""
        self._inflight.pop(key, None)

    def clear(self) -> None:
        self._inflight.clear()

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def _on_done(self, key: str, future: asyncio.Future[_T]) -> None:
        if future.cancelled() or future.exception() is not None:
            self._evict(key, future)
            return
        if self._grace <= 0:
            self._evict(key, future)
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self._grace, self._evict, key, future)

    def _evict(self, key: str, future: asyncio.Future[_T]) -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def filter_cache_key(tag: str, filter_: Mapping[str, Any] | BaseModel) -> str:
    """Build an order-independent cache key for a listing filter.

    Every set entry is rendered ``key=value``; the strings are sorted
    lexicographically, joined with ``&`` and prefixed with ``"<tag>:"``.

    >>> filter_cache_key("top", {"sort": "a", "page": 2})
    'top:page=2&sort=a'
    """
    if isinstance(filter_, BaseModel):
        entries = filter_.model_dump(exclude_none=True)
    else:
        entries = {k: v for k, v in filter_.items() if v is not None}
    rendered = sorted(f"{key}={value}" for key, value in entries.items())
    return f"{tag}:" + "&".join(rendered)


def entity_cache_key(*ids: int | str) -> str:
    """Key for id lookups: ``"12"`` for one level, ``"12:34"`` for two."""
    return ":".join(str(i) for i in ids)
