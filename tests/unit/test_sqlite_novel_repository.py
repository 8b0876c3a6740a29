"""Unit tests for the SQLite novel repository."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from novelfeed.models.novel import (
    Author,
    ChapterImage,
    ChapterRecord,
    NovelRecord,
    VolumeRecord,
)
from novelfeed.providers.storage.sqlite_novel_repository import SQLiteNovelRepository
from novelfeed.utils.errors import PersistenceError
from tests.conftest import NOW, UPDATED


def _novel(nid: int = 1, done: bool = False, name: str = "测试小说") -> NovelRecord:
    return NovelRecord(
        nid=nid,
        name=name,
        authors=[Author(name="作者甲", position="author")],
        labels=["校园", "恋爱"],
        description="<p>简介</p>",
        cover="https://img3.readpai.com/cover/1.jpg",
        updated_at=UPDATED,
        fetched_at=NOW,
        done=done,
    )


def _volume(vid: int, nid: int = 1, done: bool = False) -> VolumeRecord:
    return VolumeRecord(
        vid=vid,
        nid=nid,
        name=f"第{vid}卷",
        volume=f"#{vid}",
        updated_at=UPDATED,
        fetched_at=NOW,
        done=done,
    )


def _chapter(cid: int, vid: int = 10, nid: int = 1, index: int = 0, content: str = "<p>a</p>") -> ChapterRecord:
    return ChapterRecord(
        cid=cid,
        vid=vid,
        nid=nid,
        title=f"Chapter {cid}",
        content=content,
        images=[ChapterImage(src=f"https://img3.readpai.com/{cid}.jpg", alt="插图")],
        index=index,
        updated_at=UPDATED,
        fetched_at=NOW,
    )


# ======================================================================
# Lifecycle
# ======================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_creates_parent_directory(self, tmp_path: Path) -> None:
        repo = SQLiteNovelRepository(tmp_path / "nested" / "dir" / "novels.db")
        await repo.initialize()
        assert repo.db_path.exists()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel())
        await repository.initialize()
        assert await repository.get_novel(1) is not None

    @pytest.mark.asyncio
    async def test_sqlite_errors_become_persistence_errors(self, tmp_path: Path) -> None:
        repo = SQLiteNovelRepository(tmp_path / "uninitialized.db")
        with pytest.raises(PersistenceError) as exc_info:
            await repo.get_novel(1)
        assert str(exc_info.value).startswith("[sqlite]")


# ======================================================================
# Novels
# ======================================================================


class TestNovels:
    @pytest.mark.asyncio
    async def test_round_trip(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel())
        stored = await repository.get_novel(1)
        assert stored == _novel()

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel())
        stored = await repository.get_novel(1)
        assert stored.updated_at.utcoffset() == timedelta(0)

    @pytest.mark.asyncio
    async def test_upsert_replaces_row(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel(done=True))
        await repository.upsert_novel(_novel(name="改名"))
        stored = await repository.get_novel(1)
        assert stored.name == "改名"
        assert stored.done is False

    @pytest.mark.asyncio
    async def test_get_missing(self, repository: SQLiteNovelRepository) -> None:
        assert await repository.get_novel(404) is None

    @pytest.mark.asyncio
    async def test_mark_done(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel())
        await repository.mark_novel_done(1)
        assert (await repository.get_novel(1)).done is True

    @pytest.mark.asyncio
    async def test_list_filters_by_done(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel(nid=2, done=True))
        await repository.upsert_novel(_novel(nid=1))
        assert [n.nid for n in await repository.list_novels()] == [1, 2]
        assert [n.nid for n in await repository.list_novels(done=True)] == [2]
        assert [n.nid for n in await repository.list_novels(done=False)] == [1]


# ======================================================================
# Volumes and chapters
# ======================================================================


class TestVolumes:
    @pytest.mark.asyncio
    async def test_list_ordered_by_vid(self, repository: SQLiteNovelRepository) -> None:
        for vid in (12, 10, 11):
            await repository.upsert_volume(_volume(vid))
        await repository.upsert_volume(_volume(20, nid=2))
        assert [v.vid for v in await repository.list_volumes(1)] == [10, 11, 12]

    @pytest.mark.asyncio
    async def test_mark_done(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_volume(_volume(10))
        await repository.mark_volume_done(10)
        assert (await repository.get_volume(10)).done is True

    @pytest.mark.asyncio
    async def test_upsert_resets_done(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_volume(_volume(10, done=True))
        await repository.upsert_volume(_volume(10))
        assert (await repository.get_volume(10)).done is False


class TestChapters:
    @pytest.mark.asyncio
    async def test_round_trip_with_images(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_chapter(_chapter(100))
        stored = await repository.get_chapter(100)
        assert stored == _chapter(100)

    @pytest.mark.asyncio
    async def test_list_ordered_by_index(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_chapter(_chapter(300, index=0))
        await repository.upsert_chapter(_chapter(100, index=2))
        await repository.upsert_chapter(_chapter(200, index=1))
        assert [c.cid for c in await repository.list_chapters(10)] == [300, 200, 100]

    @pytest.mark.asyncio
    async def test_update_content_only_when_changed(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_chapter(_chapter(100, content="<p>old</p>"))

        assert await repository.update_chapter_content(100, "<p>old</p>", []) is False
        assert await repository.update_chapter_content(100, "<p>new</p>", []) is True

        stored = await repository.get_chapter(100)
        assert stored.content == "<p>new</p>"
        assert stored.images == []

    @pytest.mark.asyncio
    async def test_update_missing_chapter(self, repository: SQLiteNovelRepository) -> None:
        assert await repository.update_chapter_content(404, "<p>x</p>", []) is False


# ======================================================================
# Read models
# ======================================================================


class TestReadModels:
    @pytest.mark.asyncio
    async def test_novel_page(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel(done=True))
        await repository.upsert_volume(_volume(11))
        await repository.upsert_volume(_volume(10))

        page = await repository.get_novel_page(1)

        assert page.name == "测试小说"
        assert page.done is True
        assert page.fetched_at == NOW
        assert [(v.vid, v.title, v.volume) for v in page.volumes] == [(10, "第10卷", "#10"), (11, "第11卷", "#11")]

    @pytest.mark.asyncio
    async def test_novel_page_missing(self, repository: SQLiteNovelRepository) -> None:
        assert await repository.get_novel_page(1) is None

    @pytest.mark.asyncio
    async def test_volume_page(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel())
        await repository.upsert_volume(_volume(10, done=True))
        await repository.upsert_chapter(_chapter(101, index=1))
        await repository.upsert_chapter(_chapter(100, index=0))

        page = await repository.get_volume_page(1, 10)

        assert page.authors == [Author(name="作者甲", position="author")]
        assert [c.cid for c in page.chapters] == [100, 101]
        assert page.done is True

    @pytest.mark.asyncio
    async def test_volume_page_requires_matching_novel(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_novel(_novel(nid=1))
        await repository.upsert_novel(_novel(nid=2))
        await repository.upsert_volume(_volume(10, nid=1))
        assert await repository.get_volume_page(2, 10) is None
        assert await repository.get_volume_page(3, 10) is None

    @pytest.mark.asyncio
    async def test_chapter_content(self, repository: SQLiteNovelRepository) -> None:
        await repository.upsert_chapter(_chapter(100))

        chapter = await repository.get_chapter_content(1, 100)

        assert chapter.title == "Chapter 100"
        assert chapter.images[0].alt == "插图"
        assert chapter.fetched_at == NOW
        assert await repository.get_chapter_content(2, 100) is None
