"""Unit tests for the concurrency-limited WorkQueue."""

from __future__ import annotations

import asyncio

import pytest

from novelfeed.utils.concurrency import WorkQueue


class TestWorkQueue:
    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            WorkQueue(0)

    @pytest.mark.asyncio
    async def test_returns_factory_result(self) -> None:
        queue = WorkQueue(1, name="detail")

        async def work() -> int:
            return 42

        assert await queue.run(work) == 42
        assert queue.active_count == 0

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self) -> None:
        queue = WorkQueue(2)
        running = 0
        peak = 0

        async def work() -> None:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(queue.run(work) for _ in range(6)))
        assert peak == 2

    @pytest.mark.asyncio
    async def test_admission_is_fifo(self) -> None:
        queue = WorkQueue(1)
        gate = asyncio.Event()
        order: list[int] = []

        async def blocker() -> None:
            await gate.wait()

        def job(n: int):
            async def _run() -> None:
                order.append(n)

            return _run

        first = asyncio.ensure_future(queue.run(blocker))
        await asyncio.sleep(0)
        waiters = []
        for n in range(5):
            waiters.append(asyncio.ensure_future(queue.run(job(n))))
            await asyncio.sleep(0)

        assert queue.pending_count == 5
        gate.set()
        await asyncio.gather(first, *waiters)
        assert order == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_slot_released_on_failure(self) -> None:
        queue = WorkQueue(1)

        async def boom() -> None:
            raise RuntimeError("failed")

        async def fine() -> str:
            return "ok"

        with pytest.raises(RuntimeError):
            await queue.run(boom)
        assert await queue.run(fine) == "ok"
        assert queue.active_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_never_runs(self) -> None:
        queue = WorkQueue(1)
        gate = asyncio.Event()
        ran: list[str] = []

        async def blocker() -> None:
            await gate.wait()

        async def skipped() -> None:
            ran.append("skipped")

        first = asyncio.ensure_future(queue.run(blocker))
        await asyncio.sleep(0)
        waiter = asyncio.ensure_future(queue.run(skipped))
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.sleep(0)
        gate.set()
        await first

        assert ran == []
        assert queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_counts_track_load(self) -> None:
        queue = WorkQueue(1)
        gate = asyncio.Event()

        async def blocker() -> None:
            await gate.wait()

        tasks = [asyncio.ensure_future(queue.run(blocker)) for _ in range(3)]
        await asyncio.sleep(0)
        assert queue.active_count == 1
        assert queue.pending_count == 2

        gate.set()
        await asyncio.gather(*tasks)
        assert queue.active_count == 0
        assert queue.pending_count == 0

    @pytest.mark.asyncio
    async def test_wait_idle_returns_once_drained(self) -> None:
        queue = WorkQueue(1)

        async def work() -> None:
            await asyncio.sleep(0.02)

        task = asyncio.ensure_future(queue.run(work))
        await asyncio.sleep(0)
        await asyncio.wait_for(queue.wait_idle(poll=0.005), timeout=1)
        assert task.done()
