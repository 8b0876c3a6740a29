"""novelfeed domain models, re-exporting all public model classes.

    - novel.py    - scraped pages and persisted records for novels,
                    volumes and chapters
    - listing.py  - ranking/library filters and listing pages
    - progress.py - background sync progress snapshots
"""

from __future__ import annotations

from novelfeed.models.listing import (
    ListingItem,
    ListingPage,
    TopFilter,
    WenkuFilter,
)
from novelfeed.models.novel import (
    Author,
    ChapterContent,
    ChapterImage,
    ChapterPagePart,
    ChapterRecord,
    ChapterRef,
    NovelPage,
    NovelRecord,
    VolumePage,
    VolumeRecord,
    VolumeSummary,
)
from novelfeed.models.progress import SyncPhase, SyncProgress

__all__ = [
    "Author",
    "ChapterContent",
    "ChapterImage",
    "ChapterPagePart",
    "ChapterRecord",
    "ChapterRef",
    "ListingItem",
    "ListingPage",
    "NovelPage",
    "NovelRecord",
    "SyncPhase",
    "SyncProgress",
    "TopFilter",
    "VolumePage",
    "VolumeRecord",
    "VolumeSummary",
    "WenkuFilter",
]
