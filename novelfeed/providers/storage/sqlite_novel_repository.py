"""SQLite-backed novel repository.

Persists novels, volumes and chapters to a local SQLite database (default
``data/novelfeed.db``).  Uses ``aiosqlite`` for async I/O with one
short-lived connection per operation.

Timestamps are stored as integer milliseconds since the epoch (UTC);
author, label and image lists as JSON text.  Every ``aiosqlite.Error`` is
re-raised as :class:`PersistenceError`.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from novelfeed.interfaces.novel_repository import INovelRepository
from novelfeed.models.novel import (
    Author,
    ChapterContent,
    ChapterImage,
    ChapterRecord,
    ChapterRef,
    NovelPage,
    NovelRecord,
    VolumePage,
    VolumeRecord,
    VolumeSummary,
)
from novelfeed.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/novelfeed.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS bili_novels (
    nid         INTEGER PRIMARY KEY,
    name        TEXT    NOT NULL,
    authors     TEXT    NOT NULL DEFAULT '[]',
    description TEXT    NOT NULL,
    cover       TEXT,
    labels      TEXT    NOT NULL DEFAULT '[]',
    updated_at  INTEGER NOT NULL,
    fetched_at  INTEGER NOT NULL,
    done        INTEGER NOT NULL DEFAULT 0
);
""",
    """\
CREATE TABLE IF NOT EXISTS bili_volumes (
    vid         INTEGER PRIMARY KEY,
    nid         INTEGER NOT NULL REFERENCES bili_novels(nid),
    name        TEXT    NOT NULL,
    volume      TEXT    NOT NULL DEFAULT '',
    description TEXT    NOT NULL,
    cover       TEXT,
    labels      TEXT    NOT NULL DEFAULT '[]',
    updated_at  INTEGER NOT NULL,
    fetched_at  INTEGER NOT NULL,
    done        INTEGER NOT NULL DEFAULT 0
);
""",
    """\
CREATE TABLE IF NOT EXISTS bili_chapters (
    cid           INTEGER PRIMARY KEY,
    vid           INTEGER NOT NULL REFERENCES bili_volumes(vid),
    nid           INTEGER NOT NULL REFERENCES bili_novels(nid),
    title         TEXT    NOT NULL,
    content       TEXT    NOT NULL,
    images        TEXT    NOT NULL DEFAULT '[]',
    chapter_index INTEGER NOT NULL DEFAULT 0,
    updated_at    INTEGER NOT NULL,
    fetched_at    INTEGER NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_volumes_nid ON bili_volumes(nid);",
    "CREATE INDEX IF NOT EXISTS idx_chapters_vid ON bili_chapters(vid);",
    "CREATE INDEX IF NOT EXISTS idx_novels_done ON bili_novels(done);",
]

_UPSERT_NOVEL_SQL = """\
INSERT INTO bili_novels
    (nid, name, authors, description, cover, labels, updated_at, fetched_at, done)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(nid)
DO UPDATE SET name        = excluded.name,
              authors     = excluded.authors,
              description = excluded.description,
              cover       = excluded.cover,
              labels      = excluded.labels,
              updated_at  = excluded.updated_at,
              fetched_at  = excluded.fetched_at,
              done        = excluded.done;
"""

_UPSERT_VOLUME_SQL = """\
INSERT INTO bili_volumes
    (vid, nid, name, volume, description, cover, labels, updated_at, fetched_at, done)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(vid)
DO UPDATE SET nid         = excluded.nid,
              name        = excluded.name,
              volume      = excluded.volume,
              description = excluded.description,
              cover       = excluded.cover,
              labels      = excluded.labels,
              updated_at  = excluded.updated_at,
              fetched_at  = excluded.fetched_at,
              done        = excluded.done;
"""

_UPSERT_CHAPTER_SQL = """\
INSERT INTO bili_chapters
    (cid, vid, nid, title, content, images, chapter_index, updated_at, fetched_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(cid)
DO UPDATE SET vid           = excluded.vid,
              nid           = excluded.nid,
              title         = excluded.title,
              content       = excluded.content,
              images        = excluded.images,
              chapter_index = excluded.chapter_index,
              updated_at    = excluded.updated_at,
              fetched_at    = excluded.fetched_at;
"""

_UPDATE_CHAPTER_CONTENT_SQL = """\
UPDATE bili_chapters
SET content = ?, images = ?, fetched_at = ?
WHERE cid = ? AND content != ?;
"""


# ------------------------------------------------------------------
# Column conversion helpers
# ------------------------------------------------------------------


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dump_json(items: list[Any]) -> str:
    return json.dumps(
        [item.model_dump() if hasattr(item, "model_dump") else item for item in items],
        ensure_ascii=False,
    )


def _novel_from_row(row: aiosqlite.Row) -> NovelRecord:
    return NovelRecord(
        nid=row["nid"],
        name=row["name"],
        authors=[Author(**a) for a in json.loads(row["authors"] or "[]")],
        labels=json.loads(row["labels"] or "[]"),
        description=row["description"],
        cover=row["cover"],
        updated_at=_from_millis(row["updated_at"]),
        fetched_at=_from_millis(row["fetched_at"]),
        done=bool(row["done"]),
    )


def _volume_from_row(row: aiosqlite.Row) -> VolumeRecord:
    return VolumeRecord(
        vid=row["vid"],
        nid=row["nid"],
        name=row["name"],
        volume=row["volume"],
        labels=json.loads(row["labels"] or "[]"),
        description=row["description"],
        cover=row["cover"],
        updated_at=_from_millis(row["updated_at"]),
        fetched_at=_from_millis(row["fetched_at"]),
        done=bool(row["done"]),
    )


def _chapter_from_row(row: aiosqlite.Row) -> ChapterRecord:
    return ChapterRecord(
        cid=row["cid"],
        vid=row["vid"],
        nid=row["nid"],
        title=row["title"],
        content=row["content"],
        images=[ChapterImage(**i) for i in json.loads(row["images"] or "[]")],
        index=row["chapter_index"],
        updated_at=_from_millis(row["updated_at"]),
        fetched_at=_from_millis(row["fetched_at"]),
    )


class SQLiteNovelRepository(INovelRepository):
    """SQLite-backed novel persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.Error as exc:
            logger.error("sqlite_error", path=str(self._db_path), error=str(exc))
            raise PersistenceError(message=f"Database operation failed: {exc}") from exc

    async def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> aiosqlite.Row | None:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            return await cursor.fetchone()

    async def _fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            return list(await cursor.fetchall())

    async def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("novel_db_initialized", path=str(self._db_path))

    async def close(self) -> None:
        # Connections are per-operation; nothing is held open.
        return None

    # ------------------------------------------------------------------
    # Novels
    # ------------------------------------------------------------------

    async def get_novel(self, nid: int) -> NovelRecord | None:
        row = await self._fetch_one("SELECT * FROM bili_novels WHERE nid = ?", (nid,))
        return _novel_from_row(row) if row is not None else None

    async def upsert_novel(self, record: NovelRecord) -> None:
        await self._execute(
            _UPSERT_NOVEL_SQL,
            (
                record.nid,
                record.name,
                _dump_json(record.authors),
                record.description,
                record.cover,
                _dump_json(record.labels),
                _to_millis(record.updated_at),
                _to_millis(record.fetched_at),
                int(record.done),
            ),
        )
        logger.debug("novel_upserted", nid=record.nid, done=record.done)

    async def mark_novel_done(self, nid: int) -> None:
        await self._execute("UPDATE bili_novels SET done = 1 WHERE nid = ?", (nid,))
        logger.debug("novel_marked_done", nid=nid)

    async def list_novels(self, done: bool | None = None) -> list[NovelRecord]:
        if done is None:
            rows = await self._fetch_all("SELECT * FROM bili_novels ORDER BY nid")
        else:
            rows = await self._fetch_all(
                "SELECT * FROM bili_novels WHERE done = ? ORDER BY nid", (int(done),)
            )
        return [_novel_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Volumes
    # ------------------------------------------------------------------

    async def get_volume(self, vid: int) -> VolumeRecord | None:
        row = await self._fetch_one("SELECT * FROM bili_volumes WHERE vid = ?", (vid,))
        return _volume_from_row(row) if row is not None else None

    async def list_volumes(self, nid: int) -> list[VolumeRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM bili_volumes WHERE nid = ? ORDER BY vid", (nid,)
        )
        return [_volume_from_row(r) for r in rows]

    async def upsert_volume(self, record: VolumeRecord) -> None:
        await self._execute(
            _UPSERT_VOLUME_SQL,
            (
                record.vid,
                record.nid,
                record.name,
                record.volume,
                record.description,
                record.cover,
                _dump_json(record.labels),
                _to_millis(record.updated_at),
                _to_millis(record.fetched_at),
                int(record.done),
            ),
        )
        logger.debug("volume_upserted", nid=record.nid, vid=record.vid, done=record.done)

    async def mark_volume_done(self, vid: int) -> None:
        await self._execute("UPDATE bili_volumes SET done = 1 WHERE vid = ?", (vid,))
        logger.debug("volume_marked_done", vid=vid)

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    async def get_chapter(self, cid: int) -> ChapterRecord | None:
        row = await self._fetch_one("SELECT * FROM bili_chapters WHERE cid = ?", (cid,))
        return _chapter_from_row(row) if row is not None else None

    async def list_chapters(self, vid: int) -> list[ChapterRecord]:
        rows = await self._fetch_all(
            "SELECT * FROM bili_chapters WHERE vid = ? ORDER BY chapter_index, cid", (vid,)
        )
        return [_chapter_from_row(r) for r in rows]

    async def upsert_chapter(self, record: ChapterRecord) -> None:
        await self._execute(
            _UPSERT_CHAPTER_SQL,
            (
                record.cid,
                record.vid,
                record.nid,
                record.title,
                record.content,
                _dump_json(record.images),
                record.index,
                _to_millis(record.updated_at),
                _to_millis(record.fetched_at),
            ),
        )
        logger.debug("chapter_upserted", nid=record.nid, vid=record.vid, cid=record.cid)

    async def update_chapter_content(
        self,
        cid: int,
        content: str,
        images: list[ChapterImage],
    ) -> bool:
        updated = await self._execute(
            _UPDATE_CHAPTER_CONTENT_SQL,
            (content, _dump_json(images), _to_millis(_now()), cid, content),
        )
        logger.debug("chapter_content_updated", cid=cid, updated=updated > 0)
        return updated > 0

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def get_novel_page(self, nid: int) -> NovelPage | None:
        novel = await self.get_novel(nid)
        if novel is None:
            return None
        volumes = await self.list_volumes(nid)
        return NovelPage(
            nid=novel.nid,
            name=novel.name,
            authors=novel.authors,
            labels=novel.labels,
            description=novel.description,
            cover=novel.cover,
            volumes=[
                VolumeSummary(
                    nid=nid,
                    vid=v.vid,
                    title=v.name,
                    cover=v.cover,
                    volume=v.volume,
                )
                for v in volumes
            ],
            updated_at=novel.updated_at,
            fetched_at=novel.fetched_at,
            done=novel.done,
        )

    async def get_volume_page(self, nid: int, vid: int) -> VolumePage | None:
        novel = await self.get_novel(nid)
        if novel is None:
            return None
        volume = await self.get_volume(vid)
        if volume is None or volume.nid != nid:
            return None
        chapters = await self.list_chapters(vid)
        return VolumePage(
            nid=nid,
            vid=vid,
            name=volume.name,
            authors=novel.authors,
            labels=volume.labels,
            description=volume.description,
            cover=volume.cover,
            chapters=[ChapterRef(nid=nid, vid=vid, cid=c.cid, title=c.title) for c in chapters],
            updated_at=volume.updated_at,
            fetched_at=volume.fetched_at,
            done=volume.done,
        )

    async def get_chapter_content(self, nid: int, cid: int) -> ChapterContent | None:
        chapter = await self.get_chapter(cid)
        if chapter is None or chapter.nid != nid:
            return None
        return ChapterContent(
            nid=nid,
            cid=cid,
            title=chapter.title,
            content=chapter.content,
            images=chapter.images,
            fetched_at=chapter.fetched_at,
        )
