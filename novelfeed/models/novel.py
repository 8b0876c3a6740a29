"""Novel, volume and chapter domain models.

Two families live here:

- **Page models** (``NovelPage``, ``VolumePage``, ``ChapterPagePart``,
  ``ChapterContent``) are what the scraper returns for one upstream fetch.
  Image URLs in them have already been rewritten to the proxy origin.
- **Records** (``NovelRecord``, ``VolumeRecord``, ``ChapterRecord``) mirror
  the persisted rows, including the ``done`` bookkeeping that drives the
  incremental sync.

All models are frozen; state changes go through ``model_copy(update=...)``.
Timestamps are timezone-aware.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Author(BaseModel):
    """A credited person: author, illustrator or translator."""

    model_config = ConfigDict(frozen=True)

    name: str
    position: str = "author"


class ChapterImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    src: str
    alt: str | None = None


# ─── Scraped pages ───────────────────────────────────────────────────


class VolumeSummary(BaseModel):
    """One entry of a novel's volume list, as shown on the novel page."""

    model_config = ConfigDict(frozen=True)

    nid: int
    vid: int
    title: str
    cover: str | None = None
    volume: str = Field(default="", description="Ordinal label, e.g. '第一卷' or '〈上〉'.")


class NovelPage(BaseModel):
    """A novel's landing page with its volume list sorted by ``vid``."""

    model_config = ConfigDict(frozen=True)

    nid: int
    name: str
    authors: list[Author] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    description: str = ""
    cover: str | None = None
    volumes: list[VolumeSummary] = Field(default_factory=list)
    updated_at: datetime
    fetched_at: datetime | None = None
    done: bool = False

    def find_volume(self, vid: int) -> VolumeSummary | None:
        """Return the summary for *vid*, or ``None`` if the novel has no such volume."""
        for volume in self.volumes:
            if volume.vid == vid:
                return volume
        return None


class ChapterRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    nid: int
    vid: int
    cid: int
    title: str


class VolumePage(BaseModel):
    """A volume page with its chapter list in source order."""

    model_config = ConfigDict(frozen=True)

    nid: int
    vid: int
    name: str
    authors: list[Author] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    description: str = ""
    cover: str | None = None
    chapters: list[ChapterRef] = Field(default_factory=list)
    updated_at: datetime
    fetched_at: datetime | None = None
    done: bool = False


class ChapterPagePart(BaseModel):
    """One physical page of a (possibly paginated) chapter.

    ``total`` is ``None`` when the title carries no ``（n/m）`` suffix.
    """

    model_config = ConfigDict(frozen=True)

    nid: int
    cid: int
    title: str
    content: str
    images: list[ChapterImage] = Field(default_factory=list)
    current: int = 1
    total: int | None = None
    complete: bool = True


class ChapterContent(BaseModel):
    """A full chapter assembled from all of its pages."""

    model_config = ConfigDict(frozen=True)

    nid: int
    cid: int
    title: str
    content: str
    images: list[ChapterImage] = Field(default_factory=list)
    fetched_at: datetime | None = None


# ─── Persisted records ───────────────────────────────────────────────


class NovelRecord(BaseModel):
    """Persisted novel row.

    ``done`` means every volume finished syncing on the last pass; it is
    reset to ``False`` every time the metadata is rewritten.
    """

    model_config = ConfigDict(frozen=True)

    nid: int
    name: str
    authors: list[Author] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    description: str = ""
    cover: str | None = None
    updated_at: datetime
    fetched_at: datetime
    done: bool = False


class VolumeRecord(BaseModel):
    """Persisted volume row; ``updated_at`` is the source-reported time."""

    model_config = ConfigDict(frozen=True)

    vid: int
    nid: int
    name: str
    volume: str = ""
    labels: list[str] = Field(default_factory=list)
    description: str = ""
    cover: str | None = None
    updated_at: datetime
    fetched_at: datetime
    done: bool = False


class ChapterRecord(BaseModel):
    """Persisted chapter row.

    ``updated_at`` is inherited from the parent volume at sync time; the
    upstream site does not report per-chapter modification times.
    """

    model_config = ConfigDict(frozen=True)

    cid: int
    vid: int
    nid: int
    title: str
    content: str
    images: list[ChapterImage] = Field(default_factory=list)
    index: int = 0
    updated_at: datetime
    fetched_at: datetime
