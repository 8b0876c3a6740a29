"""Fetch orchestration and incremental novel sync.

Every page read goes through the same layers::

    caller → InflightDeduplicator → TTL cache → WorkQueue → scraper → browser

and the sync operations walk the novel → volume → chapter hierarchy on top
of those reads, comparing what was fetched with what is stored and writing
through only what changed.

Failure policy
--------------
- A volume that fails is counted and the novel sync moves on to the next
  volume; the novel is only marked ``done`` when every volume succeeded.
- A chapter that fails aborts its volume, which is then left ``done=False``
  and retried on the next pass.

Both sync levels are idempotent: a second pass with unchanged upstream data
fetches each volume page once and writes nothing but ``done`` flags.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

import structlog

from novelfeed.config.tunables import AppConfig, CacheConfig
from novelfeed.interfaces.cache_provider import ICacheProvider
from novelfeed.interfaces.novel_repository import INovelRepository
from novelfeed.models.listing import ListingPage, TopFilter, WenkuFilter
from novelfeed.models.novel import (
    ChapterContent,
    ChapterPagePart,
    ChapterRecord,
    NovelPage,
    NovelRecord,
    VolumePage,
    VolumeRecord,
)
from novelfeed.models.progress import SyncPhase
from novelfeed.providers.cache.memory_cache import MemoryCacheProvider
from novelfeed.providers.scraper.linovelib import LinovelibScraper, assemble_chapter
from novelfeed.services.progress_tracker import SyncProgressTracker
from novelfeed.services.task_manager import BackgroundTaskManager
from novelfeed.utils.concurrency import WorkQueue
from novelfeed.utils.errors import NotFoundError, NovelFeedError, ScrapeError, WorkflowError
from novelfeed.utils.logging import get_logger
from novelfeed.utils.memoize import InflightDeduplicator, entity_cache_key, filter_cache_key

logger: structlog.BoundLogger = get_logger(__name__)

_T = TypeVar("_T")


def novel_task_key(nid: int) -> str:
    return f"novel:{nid}"


@dataclass(frozen=True)
class SyncCaches:
    """One TTL result cache per resource class."""

    listing: ICacheProvider
    novel: ICacheProvider
    volume: ICacheProvider
    chapter: ICacheProvider

    @classmethod
    def from_config(cls, config: CacheConfig) -> SyncCaches:
        return cls(
            listing=MemoryCacheProvider("listing", config.listing.max_size, config.listing.ttl),
            novel=MemoryCacheProvider("novel", config.novel.max_size, config.novel.ttl),
            volume=MemoryCacheProvider("volume", config.volume.max_size, config.volume.ttl),
            chapter=MemoryCacheProvider("chapter", config.chapter.max_size, config.chapter.ttl),
        )


class NovelSyncService:
    """Cached page reads plus the incremental novel → volume → chapter sync.

    Parameters
    ----------
    scraper:
        Fetches and parses upstream pages.
    repository:
        Persistence gateway the sync writes through to.
    config:
        Application tunables (queues, caches, sync pacing).
    caches:
        Result caches; built from ``config.cache`` when omitted.
    task_manager:
        Runs scheduled background syncs; a private one is created when
        omitted.
    progress:
        Optional tracker receiving per-task progress snapshots.
    sleep, rng, clock:
        Injected for tests.
    """

    def __init__(
        self,
        scraper: LinovelibScraper,
        repository: INovelRepository,
        config: AppConfig | None = None,
        *,
        caches: SyncCaches | None = None,
        task_manager: BackgroundTaskManager | None = None,
        progress: SyncProgressTracker | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._scraper = scraper
        self._repository = repository
        self._config = config if config is not None else AppConfig()
        self._caches = caches if caches is not None else SyncCaches.from_config(self._config.cache)
        self._tasks = task_manager if task_manager is not None else BackgroundTaskManager()
        self._progress = progress
        self._sleep = sleep
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock if clock is not None else (lambda: datetime.now(tz=timezone.utc))

        self._index_queue = WorkQueue(self._config.queue.index_limit, name="index")
        self._detail_queue = WorkQueue(self._config.queue.detail_limit, name="detail")

        grace = self._config.sync.dedup_grace
        self._novel_memo: InflightDeduplicator[NovelPage] = InflightDeduplicator("get_novel", grace)
        self._volume_memo: InflightDeduplicator[VolumePage] = InflightDeduplicator(
            "get_novel_volume", grace
        )
        self._chapter_memo: InflightDeduplicator[ChapterContent] = InflightDeduplicator(
            "get_novel_chapter", grace
        )
        self._listing_memo: InflightDeduplicator[ListingPage] = InflightDeduplicator(
            "get_listing", grace
        )
        self._update_novel_memo: InflightDeduplicator[NovelPage] = InflightDeduplicator(
            "update_novel", grace
        )
        self._update_volume_memo: InflightDeduplicator[VolumePage] = InflightDeduplicator(
            "update_novel_volume", grace
        )
        self._update_chapter_memo: InflightDeduplicator[bool] = InflightDeduplicator(
            "update_novel_chapter", grace
        )

    @property
    def task_manager(self) -> BackgroundTaskManager:
        return self._tasks

    @property
    def queues(self) -> tuple[WorkQueue, WorkQueue]:
        """The ``(index, detail)`` work queues."""
        return self._index_queue, self._detail_queue

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------

    async def _cached(
        self,
        memo: InflightDeduplicator[_T],
        cache: ICacheProvider,
        key: str,
        loader: Callable[[], Awaitable[_T]],
    ) -> _T:
        async def _load() -> _T:
            cached = await cache.get(key)
            if cached is not None:
                return cached
            value = await loader()
            await cache.set(key, value)
            return value

        return await memo.run(key, _load)

    async def _fetch_page(
        self,
        queue: WorkQueue,
        label: str,
        fetch: Callable[[], Awaitable[_T | None]],
    ) -> _T:
        """Run *fetch* through *queue*, mapping every failure onto ``WorkflowError``."""
        try:
            page = await queue.run(fetch)
        except ScrapeError as exc:
            if exc.missing:
                raise NotFoundError(f"{label} is not found", cause=exc) from exc
            raise WorkflowError(f"Failed fetching {label}", status=500, cause=exc) from exc
        except NovelFeedError as exc:
            raise WorkflowError(f"Failed fetching {label}", status=500, cause=exc) from exc
        if page is None:
            raise NotFoundError(f"{label} is not found")
        return page

    async def _report(self, nid: int, **changes: Any) -> None:
        if self._progress is not None:
            await self._progress.update(novel_task_key(nid), nid=nid, **changes)

    # ------------------------------------------------------------------
    # Page reads
    # ------------------------------------------------------------------

    async def get_novel(self, nid: int) -> NovelPage:
        """Return the novel page, its volumes sorted by ``vid``.

        Raises
        ------
        NotFoundError
            The novel does not exist or was taken down.
        WorkflowError
            Any other fetch failure (status 500), chaining the cause.
        """

        async def _load() -> NovelPage:
            logger.info("novel_fetch_started", nid=nid)
            page = await self._fetch_page(
                self._detail_queue,
                f"novel page nid:{nid}",
                lambda: self._scraper.fetch_novel(nid),
            )
            logger.info("novel_fetch_finished", nid=nid, name=page.name, volumes=len(page.volumes))
            return page.model_copy(update={"fetched_at": self._clock()})

        return await self._cached(self._novel_memo, self._caches.novel, entity_cache_key(nid), _load)

    async def get_novel_volume(self, nid: int, vid: int) -> VolumePage:
        """Return the volume page with its chapters in source order."""

        async def _load() -> VolumePage:
            logger.info("volume_fetch_started", nid=nid, vid=vid)
            page = await self._fetch_page(
                self._detail_queue,
                f"novel volume page nid:{nid} vid:{vid}",
                lambda: self._scraper.fetch_volume(nid, vid),
            )
            logger.info("volume_fetch_finished", nid=nid, vid=vid, chapters=len(page.chapters))
            return page.model_copy(update={"fetched_at": self._clock()})

        return await self._cached(
            self._volume_memo, self._caches.volume, entity_cache_key(nid, vid), _load
        )

    async def get_novel_chapter(self, nid: int, cid: int) -> ChapterContent:
        """Fetch every page of a chapter and return the assembled content.

        Pages are requested one at a time until a page reports completion
        (or ``max_chapter_pages`` is reached), sleeping a random half-to-full
        ``chapter_page_delay`` between them.  A page after the first that
        comes back empty ends the chapter.
        """

        async def _load() -> ChapterContent:
            label = f"novel chapter page nid:{nid} cid:{cid}"
            delay = self._config.sync.chapter_page_delay
            parts: list[ChapterPagePart] = []
            page_no = 1
            while True:
                logger.debug("chapter_page_fetch_started", nid=nid, cid=cid, page=page_no)
                try:
                    part = await self._fetch_page(
                        self._detail_queue,
                        label,
                        lambda n=page_no: self._scraper.fetch_chapter_page(nid, cid, n),
                    )
                except NotFoundError:
                    if not parts:
                        raise
                    break
                parts.append(part)
                if part.complete or page_no >= self._config.sync.max_chapter_pages:
                    break
                page_no += 1
                await self._sleep(self._rng.uniform(delay / 2, delay))

            chapter = assemble_chapter(nid, cid, parts)
            if chapter is None:
                raise NotFoundError(f"{label} is not found")
            logger.info("chapter_fetch_finished", nid=nid, cid=cid, pages=len(parts))
            return chapter.model_copy(update={"fetched_at": self._clock()})

        return await self._cached(
            self._chapter_memo, self._caches.chapter, entity_cache_key(nid, cid), _load
        )

    async def get_top(self, filter_: TopFilter) -> ListingPage:
        """Return a ranking page and schedule a sync of every listed novel."""
        return await self._get_listing(
            filter_cache_key("top", filter_),
            "top page",
            lambda: self._scraper.fetch_top(filter_),
        )

    async def get_wenku(self, filter_: WenkuFilter) -> ListingPage:
        """Return a library page and schedule a sync of every listed novel."""
        return await self._get_listing(
            filter_cache_key("wenku", filter_),
            "wenku page",
            lambda: self._scraper.fetch_wenku(filter_),
        )

    async def _get_listing(
        self,
        key: str,
        label: str,
        fetch: Callable[[], Awaitable[ListingPage]],
    ) -> ListingPage:
        async def _load() -> ListingPage:
            logger.info("listing_fetch_started", key=key)
            page = await self._fetch_page(self._index_queue, f"{label} {key}", fetch)
            logger.info("listing_fetch_finished", key=key, items=len(page.items))
            if self._config.sync.schedule_listed:
                for item in page.by_recent_update():
                    self.schedule_update(item.nid)
            return page

        return await self._cached(self._listing_memo, self._caches.listing, key, _load)

    # ------------------------------------------------------------------
    # Incremental sync
    # ------------------------------------------------------------------

    def _is_fresh(self, record: NovelRecord) -> bool:
        window = (
            self._config.sync.novel_fresh_done if record.done else self._config.sync.novel_fresh_pending
        )
        return self._clock() - record.fetched_at <= timedelta(seconds=window)

    async def update_novel(self, nid: int, signal: asyncio.Event | None = None) -> NovelPage:
        """Sync one novel and all of its volumes into the repository.

        A stored novel fetched recently (24 h when ``done``, 1 h otherwise)
        is returned as stored without touching upstream.  Volume failures
        are counted, not raised; the novel is marked ``done`` only when
        every volume succeeded.

        Raises
        ------
        WorkflowError
            The novel page itself could not be fetched or stored.
        """
        return await self._update_novel_memo.run(
            entity_cache_key(nid), lambda: self._update_novel(nid, signal)
        )

    async def _update_novel(self, nid: int, signal: asyncio.Event | None) -> NovelPage:
        try:
            stored = await self._repository.get_novel(nid)
            if stored is not None and self._is_fresh(stored):
                stored_page = await self._repository.get_novel_page(nid)
                if stored_page is not None:
                    logger.info(
                        "novel_sync_skipped",
                        nid=nid,
                        name=stored.name,
                        done=stored.done,
                        fetched_at=stored.fetched_at.isoformat(),
                    )
                    return stored_page

            novel = await self.get_novel(nid)
            total = len(novel.volumes)
            await self._report(nid, phase=SyncPhase.NOVEL, name=novel.name, current=0, failed=0, total=total)
            logger.info("novel_sync_started", nid=nid, name=novel.name, volumes=total)

            await self._repository.upsert_novel(
                NovelRecord(
                    nid=nid,
                    name=novel.name,
                    authors=novel.authors,
                    labels=novel.labels,
                    description=novel.description,
                    cover=novel.cover,
                    updated_at=novel.updated_at,
                    fetched_at=novel.fetched_at or self._clock(),
                    done=False,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("novel_sync_failed", nid=nid, error=str(exc))
            await self._report(nid, phase=SyncPhase.FAILED, message=str(exc))
            raise WorkflowError(f"Failed updating novel nid:{nid} to database", cause=exc) from exc

        failed = 0
        aborted = False
        for index, summary in enumerate(novel.volumes):
            if signal is not None and signal.is_set():
                aborted = True
                logger.warning("novel_sync_aborted", nid=nid, remaining=total - index)
                break
            if index > 0:
                sync = self._config.sync
                await self._sleep(self._rng.uniform(sync.volume_pause_min, sync.volume_pause_max))

            await self._report(
                nid,
                phase=SyncPhase.VOLUME,
                current=index + 1,
                failed=failed,
                total=total,
                vid=summary.vid,
                message=summary.title,
            )
            try:
                await self.update_novel_volume(nid, summary.vid, signal)
            except Exception as exc:  # noqa: BLE001
                failed += 1
                message = exc.get_message() if isinstance(exc, WorkflowError) else repr(exc)
                logger.warning("volume_sync_failed", nid=nid, vid=summary.vid, error=message)

        if failed == 0 and not aborted:
            await self._repository.mark_novel_done(nid)
            logger.info("novel_sync_finished", nid=nid, name=novel.name, volumes=total)
            await self._report(nid, phase=SyncPhase.DONE, current=total, failed=0, total=total, message="")
            return novel.model_copy(update={"done": True})

        logger.warning("novel_sync_incomplete", nid=nid, name=novel.name, failed=failed, aborted=aborted)
        await self._report(
            nid,
            phase=SyncPhase.FAILED,
            failed=failed,
            total=total,
            message="aborted" if aborted else f"{failed} of {total} volumes failed",
        )
        return novel

    async def update_novel_volume(
        self,
        nid: int,
        vid: int,
        signal: asyncio.Event | None = None,
    ) -> VolumePage:
        """Sync one volume and its chapters.

        Raises
        ------
        NotFoundError
            The novel has no volume *vid*.
        WorkflowError
            The volume page or any chapter could not be fetched or stored.
        """
        return await self._update_volume_memo.run(
            entity_cache_key(nid, vid), lambda: self._update_novel_volume(nid, vid, signal)
        )

    async def _update_novel_volume(
        self,
        nid: int,
        vid: int,
        signal: asyncio.Event | None,
    ) -> VolumePage:
        try:
            novel = await self.get_novel(nid)
        except Exception as exc:  # noqa: BLE001
            raise WorkflowError(f"Failed updating novel volume nid:{nid} vid:{vid}", cause=exc) from exc
        summary = novel.find_volume(vid)
        if summary is None:
            raise NotFoundError(f"Novel volume nid:{nid} vid:{vid} is not found")

        try:
            fetched = await self.get_novel_volume(nid, vid)
            old = await self._repository.get_volume(vid)
            if old is not None and old.done and old.updated_at >= fetched.updated_at:
                await self._repository.mark_volume_done(vid)
                logger.info(
                    "volume_sync_skipped",
                    nid=nid,
                    vid=vid,
                    title=summary.title,
                    updated_at=fetched.updated_at.isoformat(),
                )
                return fetched.model_copy(update={"done": True})

            await self._repository.upsert_volume(
                VolumeRecord(
                    vid=vid,
                    nid=nid,
                    name=summary.title,
                    volume=summary.volume,
                    labels=fetched.labels,
                    description=fetched.description,
                    cover=fetched.cover,
                    updated_at=fetched.updated_at,
                    fetched_at=fetched.fetched_at or self._clock(),
                    done=False,
                )
            )
            logger.info("volume_sync_started", nid=nid, vid=vid, chapters=len(fetched.chapters))

            total = len(fetched.chapters)
            for index, ref in enumerate(fetched.chapters):
                if signal is not None and signal.is_set():
                    raise WorkflowError(f"Updating novel volume nid:{nid} vid:{vid} was aborted")

                old_chapter = await self._repository.get_chapter(ref.cid)
                if old_chapter is not None and old_chapter.updated_at >= fetched.updated_at:
                    logger.debug("chapter_sync_skipped", nid=nid, vid=vid, cid=ref.cid)
                    continue

                await self._report(
                    nid, phase=SyncPhase.CHAPTER, current=index + 1, total=total, vid=vid, cid=ref.cid
                )
                try:
                    chapter = await self.get_novel_chapter(nid, ref.cid)
                    await self._repository.upsert_chapter(
                        ChapterRecord(
                            cid=ref.cid,
                            vid=vid,
                            nid=nid,
                            title=ref.title,
                            content=chapter.content,
                            images=chapter.images,
                            index=index,
                            updated_at=fetched.updated_at,
                            fetched_at=chapter.fetched_at or self._clock(),
                        )
                    )
                except Exception as exc:  # noqa: BLE001
                    logger.error(
                        "chapter_sync_failed",
                        nid=nid,
                        vid=vid,
                        cid=ref.cid,
                        index=index + 1,
                        total=total,
                        error=str(exc),
                    )
                    raise WorkflowError(
                        f"Failed updating novel chapter cid:{ref.cid} to database", status=500, cause=exc
                    ) from exc
                logger.info("chapter_synced", nid=nid, vid=vid, cid=ref.cid, index=index + 1, total=total)

            await self._repository.mark_volume_done(vid)
            logger.info("volume_sync_finished", nid=nid, vid=vid, title=summary.title)
            return fetched.model_copy(update={"done": True})
        except Exception as exc:  # noqa: BLE001
            logger.error("volume_sync_failed", nid=nid, vid=vid, error=str(exc))
            raise WorkflowError(
                f"Failed updating novel volume nid:{nid} vid:{vid} to database", status=500, cause=exc
            ) from exc

    async def update_novel_chapter(self, nid: int, cid: int) -> bool:
        """Re-fetch one chapter and rewrite its stored content if it changed.

        Returns
        -------
        bool
            ``True`` when the stored content was rewritten.
        """

        async def _update() -> bool:
            key = entity_cache_key(nid, cid)
            self._chapter_memo.forget(key)
            await self._caches.chapter.delete(key)
            try:
                chapter = await self.get_novel_chapter(nid, cid)
                updated = await self._repository.update_chapter_content(
                    cid, chapter.content, chapter.images
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("chapter_update_failed", nid=nid, cid=cid, error=str(exc))
                raise WorkflowError(
                    f"Failed updating novel chapter cid:{cid} to database", status=500, cause=exc
                ) from exc
            logger.info("chapter_updated", nid=nid, cid=cid, changed=updated)
            return updated

        return await self._update_chapter_memo.run(entity_cache_key(nid, cid), _update)

    def schedule_update(self, nid: int) -> bool:
        """Start :meth:`update_novel` in the background unless it is already running."""
        return self._tasks.submit(
            novel_task_key(nid), lambda signal: self.update_novel(nid, signal)
        )
