"""Unit tests for the Pydantic domain models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from novelfeed.models.listing import (
    TOP_SORT,
    WENKU_REGION,
    WENKU_TAG,
    ListingItem,
    ListingPage,
    TopFilter,
    WenkuFilter,
    resolve_mapped_value,
)
from novelfeed.models.novel import NovelPage, NovelRecord, VolumeSummary
from novelfeed.models.progress import SyncPhase, SyncProgress

_T0 = datetime(2024, 3, 1, tzinfo=timezone.utc)


# ======================================================================
# Novel models
# ======================================================================


class TestNovelPage:
    def _page(self) -> NovelPage:
        return NovelPage(
            nid=1,
            name="测试小说",
            volumes=[
                VolumeSummary(nid=1, vid=10, title="第一卷"),
                VolumeSummary(nid=1, vid=11, title="第二卷"),
            ],
            updated_at=_T0,
        )

    def test_find_volume(self) -> None:
        assert self._page().find_volume(11).title == "第二卷"

    def test_find_missing_volume(self) -> None:
        assert self._page().find_volume(99) is None

    def test_defaults(self) -> None:
        page = self._page()
        assert page.done is False
        assert page.fetched_at is None
        assert page.authors == []

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            self._page().name = "other"  # type: ignore[misc]


class TestNovelRecord:
    def test_fetched_at_required(self) -> None:
        with pytest.raises(ValidationError):
            NovelRecord(nid=1, name="n", updated_at=_T0)  # type: ignore[call-arg]

    def test_json_round_trip(self) -> None:
        record = NovelRecord(nid=1, name="n", updated_at=_T0, fetched_at=_T0, done=True)
        assert NovelRecord.model_validate_json(record.model_dump_json()) == record


# ======================================================================
# Listing models
# ======================================================================


class TestResolveMappedValue:
    def test_friendly_key(self) -> None:
        assert resolve_mapped_value(WENKU_TAG, "isekai", "all") == 47

    def test_key_is_case_insensitive(self) -> None:
        assert resolve_mapped_value(TOP_SORT, "WEEKVOTE", "monthVisit") == TOP_SORT["weekVote"]

    def test_raw_value_passes_through(self) -> None:
        assert resolve_mapped_value(WENKU_REGION, "1", "all") == 1

    def test_unknown_uses_fallback(self) -> None:
        assert resolve_mapped_value(WENKU_TAG, "no-such-tag", "all") == WENKU_TAG["all"]

    def test_none_uses_fallback(self) -> None:
        assert resolve_mapped_value(TOP_SORT, None, "monthVisit") == TOP_SORT["monthVisit"]


class TestFilters:
    def test_page_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TopFilter(page=0)
        with pytest.raises(ValidationError):
            WenkuFilter(page=0)

    def test_filters_compare_by_value(self) -> None:
        assert WenkuFilter(tag="isekai", page=2) == WenkuFilter(page=2, tag="isekai")


class TestListingPage:
    def test_by_recent_update(self) -> None:
        page = ListingPage(
            url="https://www.linovelib.com/top/monthvisit/1.html",
            items=[
                ListingItem(nid=1, title="a", updated_at=_T0),
                ListingItem(nid=2, title="b", updated_at=_T0 + timedelta(days=2)),
                ListingItem(nid=3, title="c", updated_at=_T0 + timedelta(days=1)),
            ],
            fetched_at=_T0,
        )
        assert [item.nid for item in page.by_recent_update()] == [2, 3, 1]
        assert [item.nid for item in page.items] == [1, 2, 3]


# ======================================================================
# Progress
# ======================================================================


class TestSyncProgress:
    def test_defaults(self) -> None:
        progress = SyncProgress(key="novel:1")
        assert progress.phase == SyncPhase.PENDING
        assert (progress.current, progress.failed, progress.total) == (0, 0, 0)
        assert progress.updated_at.tzinfo is not None

    def test_counts_non_negative(self) -> None:
        with pytest.raises(ValidationError):
            SyncProgress(key="novel:1", failed=-1)

    def test_phase_serializes_as_value(self) -> None:
        assert SyncProgress(key="novel:1", phase=SyncPhase.DONE).model_dump(mode="json")["phase"] == "DONE"
