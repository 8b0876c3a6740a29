"""Shared pytest fixtures for the novelfeed test suite."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from novelfeed.config.tunables import AppConfig, SyncConfig
from novelfeed.interfaces.page_fetcher import IPageFetcher
from novelfeed.models.listing import ListingItem, ListingPage, TopFilter, WenkuFilter
from novelfeed.models.novel import (
    ChapterImage,
    ChapterPagePart,
    ChapterRef,
    NovelPage,
    VolumePage,
    VolumeSummary,
)
from novelfeed.providers.storage.sqlite_novel_repository import SQLiteNovelRepository
from novelfeed.services.progress_tracker import SyncProgressTracker
from novelfeed.services.sync_service import NovelSyncService
from novelfeed.services.task_manager import BackgroundTaskManager

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "pages"

UPDATED = datetime(2024, 3, 1, 4, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 3, 2, 0, 0, tzinfo=timezone.utc)


def read_page(name: str) -> str:
    """Return the HTML of a saved page under ``tests/fixtures/pages``."""
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


async def no_sleep(_seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fetcher fake
# ---------------------------------------------------------------------------


class FixtureFetcher(IPageFetcher):
    """Serves fixture files by site path and records every request."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages: dict[str, str] = dict(pages or {})
        self.calls: list[tuple[str, str | None]] = []
        self.closed = False

    async def fetch(
        self,
        path: str,
        *,
        selector: str | None = None,
        timeout: float | None = None,
    ) -> str:
        self.calls.append((path, selector))
        if path not in self.pages:
            raise KeyError(path)
        return self.pages[path]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fixture_fetcher() -> FixtureFetcher:
    return FixtureFetcher(
        {
            "/novel/1410.html": read_page("novel_1410.html"),
            "/novel/1500.html": read_page("novel_no_volumes.html"),
            "/novel/1500/catalog": read_page("catalog_1500.html"),
            "/novel/9999.html": read_page("taken_down.html"),
            "/novel/1410/vol_200.html": read_page("volume_200.html"),
            "/novel/1410/5001.html": read_page("chapter_5001.html"),
            "/novel/1410/5001_2.html": read_page("chapter_5001_2.html"),
            "/novel/1410/5002.html": read_page("chapter_5002.html"),
            "/top/monthvisit/1.html": read_page("top_monthvisit.html"),
            "/wenku/lastupdate_0_0_0_0_0_0_0_1_0.html": read_page("wenku_lastupdate.html"),
        }
    )


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def make_novel_page(
    nid: int = 1,
    vids: tuple[int, ...] = (10, 11),
    updated_at: datetime = UPDATED,
    name: str = "Test Novel",
) -> NovelPage:
    return NovelPage(
        nid=nid,
        name=name,
        description="A novel used in tests.",
        cover="https://img3.readpai.com/cover/1.jpg",
        volumes=[
            VolumeSummary(nid=nid, vid=vid, title=f"Volume {vid}", volume=f"#{vid}")
            for vid in vids
        ],
        updated_at=updated_at,
    )


def make_volume_page(
    nid: int = 1,
    vid: int = 10,
    cids: tuple[int, ...] = (100, 101),
    updated_at: datetime = UPDATED,
) -> VolumePage:
    return VolumePage(
        nid=nid,
        vid=vid,
        name=f"Volume {vid}",
        chapters=[ChapterRef(nid=nid, vid=vid, cid=cid, title=f"Chapter {cid}") for cid in cids],
        updated_at=updated_at,
    )


def make_part(
    nid: int = 1,
    cid: int = 100,
    content: str | None = None,
    current: int = 1,
    total: int | None = None,
    complete: bool = True,
    images: list[ChapterImage] | None = None,
) -> ChapterPagePart:
    return ChapterPagePart(
        nid=nid,
        cid=cid,
        title=f"Chapter {cid}",
        content=content if content is not None else f"<p>chapter {cid} page {current}</p>",
        images=images or [],
        current=current,
        total=total,
        complete=complete,
    )


def make_listing(nids_and_times: list[tuple[int, datetime]]) -> ListingPage:
    return ListingPage(
        url="https://www.linovelib.com/top/monthvisit/1.html",
        items=[
            ListingItem(nid=nid, title=f"Novel {nid}", updated_at=updated_at)
            for nid, updated_at in nids_and_times
        ],
        fetched_at=NOW,
    )


# ---------------------------------------------------------------------------
# Scraper fake
# ---------------------------------------------------------------------------


class FakeScraper:
    """In-memory stand-in for ``LinovelibScraper`` with per-method call counts.

    Values may be a page model, ``None`` (parsed but empty) or an exception
    instance, which is raised.
    """

    def __init__(self) -> None:
        self.novels: dict[int, Any] = {}
        self.volumes: dict[tuple[int, int], Any] = {}
        self.chapter_pages: dict[tuple[int, int, int], Any] = {}
        self.top: Any = None
        self.wenku: Any = None
        self.calls: dict[str, int] = {}
        self.delay = 0.0

    def count(self, method: str) -> int:
        return self.calls.get(method, 0)

    async def _serve(self, method: str, value: Any) -> Any:
        self.calls[method] = self.calls.get(method, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_novel(self, nid: int) -> NovelPage | None:
        return await self._serve("fetch_novel", self.novels.get(nid))

    async def fetch_volume(self, nid: int, vid: int) -> VolumePage | None:
        return await self._serve("fetch_volume", self.volumes.get((nid, vid)))

    async def fetch_chapter_page(self, nid: int, cid: int, page: int = 1) -> ChapterPagePart | None:
        return await self._serve("fetch_chapter_page", self.chapter_pages.get((nid, cid, page)))

    async def fetch_top(self, filter_: TopFilter) -> ListingPage:
        return await self._serve("fetch_top", self.top)

    async def fetch_wenku(self, filter_: WenkuFilter) -> ListingPage:
        return await self._serve("fetch_wenku", self.wenku)


def populate_novel(
    scraper: FakeScraper,
    nid: int = 1,
    layout: dict[int, tuple[int, ...]] | None = None,
    updated_at: datetime = UPDATED,
) -> None:
    """Register a novel whose volumes and single-page chapters all resolve."""
    layout = layout if layout is not None else {10: (100, 101), 11: (110,)}
    scraper.novels[nid] = make_novel_page(nid, tuple(layout), updated_at)
    for vid, cids in layout.items():
        scraper.volumes[(nid, vid)] = make_volume_page(nid, vid, cids, updated_at)
        for cid in cids:
            scraper.chapter_pages[(nid, cid, 1)] = make_part(nid, cid)


class Clock:
    """Mutable fake clock returning aware UTC datetimes."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(sync=SyncConfig(dedup_grace=0, schedule_listed=False))


@pytest_asyncio.fixture
async def repository(tmp_path: Path) -> SQLiteNovelRepository:
    repo = SQLiteNovelRepository(tmp_path / "novels.db")
    await repo.initialize()
    return repo


@pytest.fixture
def scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def make_service(
    scraper: FakeScraper,
    repository: SQLiteNovelRepository,
    app_config: AppConfig,
    clock: Clock,
) -> Callable[..., NovelSyncService]:
    """Factory building a ``NovelSyncService`` around the shared fakes."""

    def _make(config: AppConfig | None = None, **kwargs: Any) -> NovelSyncService:
        kwargs.setdefault("task_manager", BackgroundTaskManager())
        kwargs.setdefault("progress", SyncProgressTracker())
        return NovelSyncService(
            scraper,
            repository,
            config or app_config,
            sleep=no_sleep,
            rng=random.Random(7),
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def service(make_service: Callable[..., NovelSyncService]) -> NovelSyncService:
    return make_service()
