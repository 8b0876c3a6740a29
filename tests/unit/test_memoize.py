"""Unit tests for in-flight deduplication and cache-key derivation."""

from __future__ import annotations

import asyncio

import pytest

from novelfeed.models.listing import TopFilter, WenkuFilter
from novelfeed.utils.memoize import InflightDeduplicator, entity_cache_key, filter_cache_key

# ======================================================================
# InflightDeduplicator
# ======================================================================


class TestInflightDeduplicator:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_invocation(self) -> None:
        memo: InflightDeduplicator[str] = InflightDeduplicator("test", grace=0)
        gate = asyncio.Event()
        calls = 0

        async def factory() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            return "shared"

        first = asyncio.ensure_future(memo.run("k", factory))
        second = asyncio.ensure_future(memo.run("k", factory))
        await asyncio.sleep(0)
        gate.set()

        assert await first == "shared"
        assert await second == "shared"
        assert calls == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_separately(self) -> None:
        memo: InflightDeduplicator[str] = InflightDeduplicator("test", grace=0)
        calls: list[str] = []

        async def factory_for(key: str) -> str:
            calls.append(key)
            return key

        assert await memo.run("a", lambda: factory_for("a")) == "a"
        assert await memo.run("b", lambda: factory_for("b")) == "b"
        assert calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_resolved_result_shared_within_grace(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=10)
        calls = 0

        async def factory() -> int:
            nonlocal calls
            calls += 1
            return calls

        assert await memo.run("k", factory) == 1
        assert "k" in memo
        assert await memo.run("k", factory) == 1
        assert calls == 1
        memo.clear()

    @pytest.mark.asyncio
    async def test_success_evicted_after_grace(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=0.01)

        async def factory() -> int:
            return 1

        await memo.run("k", factory)
        assert "k" in memo
        await asyncio.sleep(0.05)
        assert "k" not in memo

    @pytest.mark.asyncio
    async def test_zero_grace_evicts_on_completion(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=0)

        async def factory() -> int:
            return 1

        await memo.run("k", factory)
        assert len(memo) == 0

    @pytest.mark.asyncio
    async def test_failure_evicts_immediately(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=10)
        calls = 0

        async def factory() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("first fails")
            return calls

        with pytest.raises(RuntimeError):
            await memo.run("k", factory)
        assert "k" not in memo
        assert await memo.run("k", factory) == 2
        memo.clear()

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_see_failure(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=0)
        gate = asyncio.Event()

        async def factory() -> int:
            await gate.wait()
            raise ValueError("shared failure")

        first = asyncio.ensure_future(memo.run("k", factory))
        second = asyncio.ensure_future(memo.run("k", factory))
        await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, ValueError) for r in results)
        assert results[0] is results[1]

    @pytest.mark.asyncio
    async def test_eviction_timer_leaves_newer_entry_alone(self) -> None:
        memo: InflightDeduplicator[str] = InflightDeduplicator("test", grace=0.01)
        gate = asyncio.Event()

        async def old() -> str:
            return "old"

        async def new() -> str:
            await gate.wait()
            return "new"

        await memo.run("k", old)
        memo.forget("k")
        pending = asyncio.ensure_future(memo.run("k", new))
        await asyncio.sleep(0.03)

        # The timer scheduled by the first entry has fired by now.
        assert "k" in memo
        gate.set()
        assert await pending == "new"

    @pytest.mark.asyncio
    async def test_caller_cancellation_does_not_cancel_shared_work(self) -> None:
        memo: InflightDeduplicator[str] = InflightDeduplicator("test", grace=0)
        gate = asyncio.Event()

        async def factory() -> str:
            await gate.wait()
            return "done"

        impatient = asyncio.ensure_future(memo.run("k", factory))
        patient = asyncio.ensure_future(memo.run("k", factory))
        await asyncio.sleep(0)
        impatient.cancel()
        await asyncio.sleep(0)
        gate.set()

        assert await patient == "done"
        assert impatient.cancelled()

    @pytest.mark.asyncio
    async def test_forget_starts_fresh_invocation(self) -> None:
        memo: InflightDeduplicator[int] = InflightDeduplicator("test", grace=10)
        calls = 0

        async def factory() -> int:
            nonlocal calls
            calls += 1
            return calls

        await memo.run("k", factory)
        memo.forget("k")
        assert await memo.run("k", factory) == 2
        memo.clear()


# ======================================================================
# Key derivation
# ======================================================================


class TestFilterCacheKey:
    def test_sorted_and_prefixed(self) -> None:
        assert filter_cache_key("top", {"sort": "monthVisit", "page": 2}) == "top:page=2&sort=monthVisit"

    def test_order_independent(self) -> None:
        a = filter_cache_key("wenku", {"tag": "isekai", "sort": "lastUpdate", "page": 3})
        b = filter_cache_key("wenku", {"page": 3, "sort": "lastUpdate", "tag": "isekai"})
        assert a == b

    def test_unset_entries_are_skipped(self) -> None:
        assert filter_cache_key("top", {"sort": None, "page": 1}) == "top:page=1"

    def test_empty_filter(self) -> None:
        assert filter_cache_key("wenku", {}) == "wenku:"

    def test_accepts_models(self) -> None:
        assert filter_cache_key("top", TopFilter(sort="weekVote", page=4)) == "top:page=4&sort=weekVote"

    def test_model_and_mapping_agree(self) -> None:
        model = WenkuFilter(tag="isekai", word_count="under300k")
        mapping = {"word_count": "under300k", "tag": "isekai"}
        assert filter_cache_key("wenku", model) == filter_cache_key("wenku", mapping)

    def test_tags_separate_namespaces(self) -> None:
        assert filter_cache_key("top", {"page": 1}) != filter_cache_key("wenku", {"page": 1})


class TestEntityCacheKey:
    def test_single_id(self) -> None:
        assert entity_cache_key(12) == "12"

    def test_nested_ids(self) -> None:
        assert entity_cache_key(12, 34) == "12:34"
