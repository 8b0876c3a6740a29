"""Concurrency-limited work queues.

Every page fetch goes through a :class:`WorkQueue` for its resource class so
the upstream site never sees more simultaneous requests than configured:

- ``index`` -- ranking and library listing pages (limit 1);
- ``detail`` -- novel, volume and chapter pages (configurable, default 1).

Admission is FIFO: ``asyncio.Semaphore`` wakes waiters in the order they
blocked.  The queue keeps its own active/pending counters so callers can
observe load and wait for the queue to drain.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from novelfeed.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class WorkQueue:
    """Run async factories with at most *limit* of them in flight.

    Parameters
    ----------
    limit:
        Maximum number of concurrently running operations.  Must be >= 1.
    name:
        Resource-class label used in log events.
    """

    def __init__(self, limit: int = 1, name: str = "default") -> None:
        if limit < 1:
            raise ValueError(f"WorkQueue limit must be >= 1, got {limit}")
        self._limit = limit
        self._name = name
        self._semaphore = asyncio.Semaphore(limit)
        self._active = 0
        self._pending = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active_count(self) -> int:
        """Number of operations currently running."""
        return self._active

    @property
    def pending_count(self) -> int:
        """Number of submissions waiting for a slot."""
        return self._pending

    async def run(self, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Wait for a free slot, then await ``factory()`` and return its result.

        The slot is released whether the operation succeeds, fails, or is
        cancelled.  A submission cancelled while still waiting never runs.
        """
        self._pending += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._pending -= 1

        self._active += 1
        try:
            return await factory()
        finally:
            self._active -= 1
            self._semaphore.release()

    async def wait_idle(self, threshold: int = 0, poll: float = 1.0) -> None:
        """Block until at most *threshold* operations are running or waiting."""
        while self._active + self._pending > threshold:
            _logger.debug(
                "queue_busy",
                queue=self._name,
                active=self._active,
                pending=self._pending,
            )
            await asyncio.sleep(poll)
