"""Service layer.

- **sync_service** -- cached page reads and the incremental
  novel → volume → chapter sync.
- **task_manager** -- deduplicated background task submission with abort.
- **progress_tracker** -- per-task progress snapshots and listeners.
"""

from novelfeed.services.progress_tracker import SyncProgressTracker
from novelfeed.services.sync_service import NovelSyncService, SyncCaches, novel_task_key
from novelfeed.services.task_manager import BackgroundTask, BackgroundTaskManager, TaskStatus

__all__ = [
    "BackgroundTask",
    "BackgroundTaskManager",
    "NovelSyncService",
    "SyncCaches",
    "SyncProgressTracker",
    "TaskStatus",
    "novel_task_key",
]
