"""Unit tests for the bounded task runner."""

import asyncio

import pytest

from tftstat.services.buffer import run_bounded


@pytest.mark.asyncio
class TestRunBounded:
    """Concurrency ceiling, completion order and failure isolation."""

    async def test_every_task_reported_once_and_limit_respected(self):
        running = 0
        peak = 0

        async def job(i):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.001 * (i % 4))
            running -= 1
            return i * 10

        seen = []
        stats = await run_bounded(
            [lambda i=i: job(i) for i in range(20)], 3,
            lambda index, result, error: seen.append((index, result, error)),
        )

        assert sorted(index for index, _, _ in seen) == list(range(20))
        assert all(result == index * 10 and error is None for index, result, error in seen)
        assert peak <= 3
        assert stats.submitted == 20
        assert stats.succeeded == 20
        assert stats.peak_in_flight == 3

    async def test_results_arrive_in_completion_order(self):
        async def job(delay, value):
            await asyncio.sleep(delay)
            return value

        order = []
        await run_bounded(
            [lambda: job(0.05, "slow"), lambda: job(0, "fast")], 2,
            lambda index, result, error: order.append(result),
        )

        assert order == ["fast", "slow"]

    async def test_tasks_start_lazily(self):
        started = []

        async def job(i):
            started.append(i)
            await asyncio.sleep(0)

        snapshots = []
        await run_bounded(
            [lambda i=i: job(i) for i in range(5)], 2,
            lambda index, result, error: snapshots.append(len(started)),
        )

        # Après la première complétion, seuls 2 tasks ont pu démarrer
        assert snapshots[0] == 2
        assert started == [0, 1, 2, 3, 4]

    async def test_failure_does_not_stop_siblings(self):
        async def job(i):
            await asyncio.sleep(0)
            if i == 1:
                raise RuntimeError("boom")
            return i

        results = {}
        stats = await run_bounded(
            [lambda i=i: job(i) for i in range(4)], 2,
            lambda index, result, error: results.__setitem__(index, error or result),
        )

        assert isinstance(results[1], RuntimeError)
        assert [results[i] for i in (0, 2, 3)] == [0, 2, 3]
        assert stats.failed == 1
        assert stats.succeeded == 3

    async def test_handler_exception_is_contained(self):
        calls = []

        def handler(index, result, error):
            calls.append(index)
            raise ValueError("handler bug")

        async def job():
            return None

        await run_bounded([job, job, job], 1, handler)

        assert calls == [0, 1, 2]

    async def test_sequential_when_limit_is_one(self):
        order = []

        async def job(i):
            order.append(("start", i))
            await asyncio.sleep(0)
            order.append(("end", i))

        await run_bounded([lambda i=i: job(i) for i in range(3)], 1, lambda *a: None)

        assert order == [("start", 0), ("end", 0), ("start", 1), ("end", 1), ("start", 2), ("end", 2)]

    async def test_empty_queue(self):
        stats = await run_bounded([], 5, lambda *a: None)
        assert stats.submitted == 0

    async def test_invalid_limit(self):
        with pytest.raises(ValueError):
            await run_bounded([], 0, lambda *a: None)
