"""Deduplicated background task submission.

Background syncs are detached from the request that triggered them.  Each
task is registered under a key (``"novel:1410"``); submitting a key that is
already running is a no-op, which is what keeps a burst of page views from
starting the same crawl many times.

Abort is cooperative: :meth:`BackgroundTaskManager.abort` sets the task's
``asyncio.Event`` signal, and the task stops at its next checkpoint.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from novelfeed.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

TaskFactory = Callable[[asyncio.Event], Awaitable[Any]]


class TaskStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    RUNNING = "running"
    ABORTING = "aborting"


@dataclass
class BackgroundTask:
    """Bookkeeping for one running background task."""

    key: str
    signal: asyncio.Event = field(default_factory=asyncio.Event)
    status: TaskStatus = TaskStatus.PENDING
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    future: asyncio.Future[Any] | None = None

    @property
    def aborted(self) -> bool:
        return self.signal.is_set()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
        }


class BackgroundTaskManager:
    """Runs keyed background tasks, at most one per key."""

    def __init__(self) -> None:
        self._running: dict[str, BackgroundTask] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._running

    def __len__(self) -> int:
        return len(self._running)

    def submit(self, key: str, factory: TaskFactory) -> bool:
        """Start ``factory(signal)`` in the background under *key*.

        Returns
        -------
        bool
            ``False`` when a task with the same key is already running.
        """
        if key in self._running:
            logger.debug("task_already_running", key=key)
            return False

        task = BackgroundTask(key=key)
        self._running[key] = task

        async def _run() -> Any:
            task.status = TaskStatus.RUNNING
            logger.info("task_started", key=key)
            try:
                return await factory(task.signal)
            finally:
                if self._running.get(key) is task:
                    del self._running[key]

        task.future = asyncio.ensure_future(_run())
        task.future.add_done_callback(lambda done: self._log_outcome(key, done))
        return True

    def abort(self, key: str) -> bool:
        """Ask the task under *key* to stop.  Returns ``False`` if none is running."""
        task = self._running.get(key)
        if task is None:
            return False
        task.status = TaskStatus.ABORTING
        task.signal.set()
        logger.info("task_abort_requested", key=key)
        return True

    def get(self, key: str) -> BackgroundTask | None:
        return self._running.get(key)

    def running(self) -> list[BackgroundTask]:
        return list(self._running.values())

    async def wait(self, key: str) -> Any:
        """Await the task under *key*; returns ``None`` if nothing is running."""
        task = self._running.get(key)
        if task is None or task.future is None:
            return None
        return await asyncio.shield(task.future)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Signal every task, then cancel whatever is still running after *timeout*."""
        tasks = list(self._running.values())
        if not tasks:
            return
        for task in tasks:
            task.signal.set()
        futures = [t.future for t in tasks if t.future is not None]
        _, pending = await asyncio.wait(futures, timeout=timeout)
        for future in pending:
            future.cancel()
        if pending:
            await asyncio.wait(pending)
        logger.info("tasks_shutdown", signalled=len(tasks), cancelled=len(pending))

    @staticmethod
    def _log_outcome(key: str, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            logger.warning("task_cancelled", key=key)
            return
        error = future.exception()
        if error is not None:
            logger.error("task_failed", key=key, error=str(error))
        else:
            logger.info("task_finished", key=key)
