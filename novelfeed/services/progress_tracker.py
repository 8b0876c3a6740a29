"""Background sync progress tracking with callback-based listener notification.

Keeps the latest :class:`SyncProgress` snapshot for every sync task and
broadcasts each update to listeners registered for that task key.  The API
reads the snapshots for ``/tasks``; the CLI registers a listener to print
progress while a foreground sync runs.

    NovelSyncService ──update()──→ SyncProgressTracker ──callback()──→ listener
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from novelfeed.models.progress import SyncPhase, SyncProgress
from novelfeed.utils.logging import get_logger


class SyncProgressTracker:
    """Stores per-task progress snapshots and notifies listeners.

    Snapshots for finished tasks are kept until :meth:`discard` is called
    (or until the tracker holds more than *max_finished* of them, oldest
    dropped first) so the API can still report the last outcome.
    """

    def __init__(self, max_finished: int = 100) -> None:
        self._snapshots: dict[str, SyncProgress] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._max_finished = max_finished
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def update(self, key: str, **changes: Any) -> SyncProgress:
        """Merge *changes* into the snapshot for *key* and notify listeners.

        Parameters
        ----------
        key:
            Task key, e.g. ``"novel:1410"``.
        **changes:
            Any :class:`SyncProgress` field (``phase``, ``current``,
            ``failed``, ``total``, ``vid``, ``cid``, ``message`` ...).

        Returns
        -------
        SyncProgress
            The new snapshot.
        """
        previous = self._snapshots.get(key)
        changes["updated_at"] = datetime.now(tz=timezone.utc)
        if previous is None:
            snapshot = SyncProgress(key=key, **changes)
        else:
            snapshot = previous.model_copy(update=changes)
        self._snapshots[key] = snapshot

        self._logger.debug(
            "progress_update",
            key=key,
            phase=snapshot.phase.value,
            current=snapshot.current,
            failed=snapshot.failed,
            total=snapshot.total,
        )

        if snapshot.phase in (SyncPhase.DONE, SyncPhase.FAILED):
            self._prune_finished()

        await self._notify_listeners(key, snapshot)
        return snapshot

    def get(self, key: str) -> SyncProgress | None:
        return self._snapshots.get(key)

    def snapshots(self) -> list[SyncProgress]:
        """Return every snapshot, most recently updated first."""
        return sorted(self._snapshots.values(), key=lambda s: s.updated_at, reverse=True)

    def discard(self, key: str) -> None:
        self._snapshots.pop(key, None)
        self._listeners.pop(key, None)

    def register_listener(self, key: str, callback: Callable) -> None:
        """Register a sync or async ``callback(snapshot)`` for updates of *key*."""
        listeners = self._listeners.setdefault(key, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, key: str, callback: Callable) -> None:
        listeners = self._listeners.get(key, [])
        if callback in listeners:
            listeners.remove(callback)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _prune_finished(self) -> None:
        finished = [
            s for s in self._snapshots.values() if s.phase in (SyncPhase.DONE, SyncPhase.FAILED)
        ]
        overflow = len(finished) - self._max_finished
        if overflow <= 0:
            return
        for snapshot in sorted(finished, key=lambda s: s.updated_at)[:overflow]:
            self._snapshots.pop(snapshot.key, None)

    async def _notify_listeners(self, key: str, snapshot: SyncProgress) -> None:
        """Invoke all listeners for *key*; a failing listener is logged and skipped."""
        for callback in list(self._listeners.get(key, [])):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    key=key,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
