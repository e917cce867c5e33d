"""Tests for app.services.pool.WorkerPool."""

import asyncio

import pytest

from app.services.pool import WorkerPool


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        WorkerPool(0)


def test_join_on_empty_pool_returns_immediately():
    async def scenario():
        pool = WorkerPool(2)
        return await pool.join(timeout=0)

    assert asyncio.run(scenario()) is True


def test_runs_every_submitted_task():
    done = []

    async def work(n):
        await asyncio.sleep(0)
        done.append(n)

    async def scenario():
        pool = WorkerPool(3)
        for n in range(10):
            pool.submit(work, n)
        assert pool.pending == 10
        drained = await pool.join()
        return drained, pool.pending

    drained, pending = asyncio.run(scenario())
    assert drained is True
    assert pending == 0
    assert sorted(done) == list(range(10))


def test_never_exceeds_capacity():
    running = 0
    peak = 0

    async def work():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    async def scenario():
        pool = WorkerPool(4)
        for _ in range(20):
            pool.submit(work)
        await asyncio.sleep(0.005)
        assert pool.in_flight <= 4
        await pool.join()

    asyncio.run(scenario())
    assert peak == 4


def test_failing_task_releases_its_slot():
    async def boom():
        raise RuntimeError("probe failed")

    async def fine():
        await asyncio.sleep(0)

    async def scenario():
        pool = WorkerPool(1)
        pool.submit(boom)
        follow_up = pool.submit(fine)
        drained = await pool.join(timeout=1)
        return drained, follow_up.done() and not follow_up.cancelled()

    drained, follow_up_ran = asyncio.run(scenario())
    assert drained is True
    assert follow_up_ran is True


def test_join_times_out_while_work_is_pending():
    async def scenario():
        release = asyncio.Event()
        pool = WorkerPool(1)
        pool.submit(release.wait)
        first = await pool.join(timeout=0.01)
        release.set()
        second = await pool.join(timeout=1)
        return first, second

    assert asyncio.run(scenario()) == (False, True)


def test_join_with_non_positive_timeout_does_not_wait():
    async def scenario():
        pool = WorkerPool(1)
        pool.submit(asyncio.sleep, 10)
        result = await pool.join(timeout=0)
        pool.cancel()
        await pool.join()
        return result

    assert asyncio.run(scenario()) is False


def test_cancel_stops_queued_and_running_tasks():
    started = []

    async def work(n):
        started.append(n)
        await asyncio.sleep(10)

    async def scenario():
        pool = WorkerPool(2)
        tasks = [pool.submit(work, n) for n in range(5)]
        await asyncio.sleep(0)
        cancelled = pool.cancel()
        drained = await pool.join(timeout=1)
        return cancelled, drained, tasks, pool.in_flight

    cancelled, drained, tasks, in_flight = asyncio.run(scenario())
    assert cancelled == 5
    assert drained is True
    assert in_flight == 0
    assert all(task.cancelled() for task in tasks)
    assert len(started) <= 2


def test_submit_requires_running_loop():
    async def work():
        pass

    pool = WorkerPool(1)
    with pytest.raises(RuntimeError):
        pool.submit(work)
    assert pool.pending == 0
