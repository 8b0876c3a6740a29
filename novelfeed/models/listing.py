"""Ranking ("top") and library ("wenku") listing models.

Filters accept either the friendly key (``"monthVisit"``) or the raw URL
value (``"monthvisit"``) for every enumerated parameter; unknown values
fall back to the default.  Unset fields stay ``None`` so that the listing
cache key only reflects what the caller actually asked for.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

TOP_SORT: dict[str, str] = {
    "monthVisit": "monthvisit",
    "weekVisit": "weekvisit",
    "monthVote": "monthvote",
    "weekVote": "weekvote",
    "monthFlower": "monthflower",
    "weekFlower": "weekflower",
    "monthEgg": "monthegg",
    "weekEgg": "weekegg",
    "lastUpdate": "lastupdate",
    "postDate": "postdate",
    "favorites": "goodnum",
    "newHot": "newhot",
}

WENKU_SORT: dict[str, str] = {
    "lastUpdate": "lastupdate",
    "postDate": "postdate",
    "weekVisit": "weekvisit",
    "monthVisit": "monthvisit",
    "weekVote": "weekvote",
    "monthVote": "monthvote",
    "weekFlower": "weekflower",
    "monthFlower": "monthflower",
    "favorites": "goodnum",
}

WENKU_TAG: dict[str, int] = {
    "all": 0,
    "romance": 64,
    "harem": 48,
    "campus": 63,
    "yuri": 27,
    "reincarnation": 26,
    "isekai": 47,
    "fantasy": 15,
    "adventure": 61,
    "comedy": 222,
    "femalePerspective": 231,
    "opProtagonist": 219,
    "magic": 96,
    "youth": 67,
    "genderBender": 31,
    "yandere": 198,
    "littleSister": 217,
    "childhoodFriend": 225,
    "battle": 18,
    "ntr": 256,
    "nonHuman": 223,
    "ojousama": 227,
    "dark": 189,
    "suspense": 68,
    "sciFi": 56,
    "otokonoko": 201,
    "war": 55,
    "loli": 185,
    "revenge": 229,
    "mindGame": 199,
    "superpower": 131,
    "grotesque": 241,
    "lightLiterature": 191,
    "workplace": 60,
    "management": 226,
    "jk": 246,
    "mecha": 135,
    "daughter": 261,
    "apocalypse": 221,
    "crime": 220,
    "travel": 239,
    "thriller": 124,
    "healing": 98,
    "mystery": 97,
    "japaneseLiterature": 205,
    "game": 248,
    "danmei": 228,
    "gourmet": 211,
    "ensembleCast": 245,
    "battleRoyale": 249,
    "music": 233,
    "fighting": 132,
    "hotBlood": 28,
    "warm": 180,
    "imaginative": 224,
    "villain": 328,
    "jc": 304,
    "spy": 254,
    "sports": 146,
    "otakuCulture": 263,
    "doujin": 333,
}

WENKU_PROGRESS: dict[str, int] = {
    "all": 0,
    "newUpload": 1,
    "developing": 2,
    "exciting": 3,
    "closing": 4,
    "completed": 5,
}

WENKU_ANIMATION: dict[str, int] = {"all": 0, "animated": 1, "notAnimated": 2}

WENKU_REGION: dict[str, int] = {
    "all": 0,
    "japan": 1,
    "chinese": 2,
    "web": 3,
    "comic": 4,
    "korea": 5,
}

WENKU_WORD_COUNT: dict[str, int] = {
    "all": 0,
    "under300k": 1,
    "between300kAnd500k": 2,
    "between500kAnd1m": 3,
    "between1mAnd2m": 4,
    "above2m": 5,
}

WENKU_UPDATED_WITHIN: dict[str, int] = {
    "all": 0,
    "threeDays": 1,
    "sevenDays": 2,
    "halfMonth": 3,
    "oneMonth": 4,
}


def resolve_mapped_value(
    mapping: Mapping[str, str | int],
    value: str | int | None,
    fallback: str,
) -> str | int:
    """Map a friendly key or raw value onto the raw URL value.

    Keys match case-insensitively; raw values match by their string form.
    Anything else resolves to ``mapping[fallback]``.
    """
    if value is None:
        return mapping[fallback]
    text = str(value).strip()
    for key, raw in mapping.items():
        if key.lower() == text.lower():
            return raw
    for raw in mapping.values():
        if str(raw).lower() == text.lower():
            return raw
    return mapping[fallback]


class TopFilter(BaseModel):
    """Query parameters of a ranking page."""

    model_config = ConfigDict(frozen=True)

    sort: str | None = None
    page: int | None = Field(default=None, ge=1)


class WenkuFilter(BaseModel):
    """Query parameters of a library page.

    ``path`` (e.g. ``"lastupdate_0_0_0_0_0_0_0_1_0.html"``) overrides every
    other field when set.
    """

    model_config = ConfigDict(frozen=True)

    path: str | None = None
    sort: str | None = None
    tag: str | int | None = None
    progress: str | int | None = None
    animation: str | int | None = None
    region: str | int | None = None
    channel: str | int | None = None
    initial: str | int | None = None
    word_count: str | int | None = None
    page: int | None = Field(default=None, ge=1)
    updated_within: str | int | None = None


class ListingItem(BaseModel):
    """One novel entry on a ranking or library page."""

    model_config = ConfigDict(frozen=True)

    nid: int
    title: str
    cover: str | None = None
    author: str | None = None
    library: str | None = None
    status: str | None = None
    updated_at: datetime
    description: str = ""
    latest_chapter: str | None = None
    rank: int | None = None
    tags: list[str] = Field(default_factory=list)


class ListingPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None
    items: list[ListingItem] = Field(default_factory=list)
    current_page: int = 1
    total_pages: int | None = None
    fetched_at: datetime

    def by_recent_update(self) -> list[ListingItem]:
        """Return the items most recently updated first."""
        return sorted(self.items, key=lambda item: item.updated_at, reverse=True)
