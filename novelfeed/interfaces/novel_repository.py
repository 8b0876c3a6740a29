"""Abstract base class for novel persistence.

The sync workflow writes through this gateway and the API reads from it.
Implementations must:

- upsert by primary key, updating every non-identity field on conflict;
- never hard-delete novels;
- surface storage failures as :class:`~novelfeed.utils.errors.PersistenceError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from novelfeed.models.novel import (
    ChapterContent,
    ChapterImage,
    ChapterRecord,
    NovelPage,
    NovelRecord,
    VolumePage,
    VolumeRecord,
)


# Concrete implementation: SQLiteNovelRepository (novelfeed/providers/storage/)
class INovelRepository(ABC):
    """Contract for novel/volume/chapter persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection, if any."""

    # -- Novels ----------------------------------------------------------

    @abstractmethod
    async def get_novel(self, nid: int) -> NovelRecord | None:
        """Return the stored novel row, or ``None``."""

    @abstractmethod
    async def upsert_novel(self, record: NovelRecord) -> None:
        """Insert or fully overwrite the novel row for ``record.nid``."""

    @abstractmethod
    async def mark_novel_done(self, nid: int) -> None:
        """Set ``done`` on the novel row."""

    @abstractmethod
    async def list_novels(self, done: bool | None = None) -> list[NovelRecord]:
        """Return all stored novels ordered by ``nid``.

        Parameters
        ----------
        done:
            When not ``None``, only novels with that ``done`` flag.
        """

    # -- Volumes ---------------------------------------------------------

    @abstractmethod
    async def get_volume(self, vid: int) -> VolumeRecord | None:
        """Return the stored volume row, or ``None``."""

    @abstractmethod
    async def list_volumes(self, nid: int) -> list[VolumeRecord]:
        """Return the novel's volumes ordered by ``vid``."""

    @abstractmethod
    async def upsert_volume(self, record: VolumeRecord) -> None:
        """Insert or fully overwrite the volume row for ``record.vid``."""

    @abstractmethod
    async def mark_volume_done(self, vid: int) -> None:
        """Set ``done`` on the volume row."""

    # -- Chapters --------------------------------------------------------

    @abstractmethod
    async def get_chapter(self, cid: int) -> ChapterRecord | None:
        """Return the stored chapter row, or ``None``."""

    @abstractmethod
    async def list_chapters(self, vid: int) -> list[ChapterRecord]:
        """Return the volume's chapters ordered by index, then ``cid``."""

    @abstractmethod
    async def upsert_chapter(self, record: ChapterRecord) -> None:
        """Insert or fully overwrite the chapter row for ``record.cid``."""

    @abstractmethod
    async def update_chapter_content(
        self,
        cid: int,
        content: str,
        images: list[ChapterImage],
    ) -> bool:
        """Rewrite a stored chapter's content only when it differs.

        Returns
        -------
        bool
            ``True`` when a row was updated; ``False`` when the chapter is
            missing or its content is byte-identical.
        """

    # -- Read models -----------------------------------------------------

    @abstractmethod
    async def get_novel_page(self, nid: int) -> NovelPage | None:
        """Return the stored novel with its volume list, or ``None``."""

    @abstractmethod
    async def get_volume_page(self, nid: int, vid: int) -> VolumePage | None:
        """Return the stored volume with its chapter list, or ``None``."""

    @abstractmethod
    async def get_chapter_content(self, nid: int, cid: int) -> ChapterContent | None:
        """Return the stored chapter content, or ``None``."""
