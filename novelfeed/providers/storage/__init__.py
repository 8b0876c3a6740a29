"""Storage providers.

SQLiteNovelRepository persists novels, volumes and chapters with the
``done`` bookkeeping the incremental sync relies on.
"""

from novelfeed.providers.storage.sqlite_novel_repository import SQLiteNovelRepository

__all__ = ["SQLiteNovelRepository"]
