"""Tests for the bounded concurrency runner."""

import asyncio

import pytest

from scoreboard.services.concurrency import run_bounded


@pytest.mark.asyncio
async def test_results_follow_item_order():
    async def worker(n: int) -> int:
        await asyncio.sleep(0.001 * (5 - n))
        return n * n

    report = await run_bounded([1, 2, 3, 4], worker, limit=4)

    assert report.results == [1, 4, 9, 16]
    assert report.failures == []
    assert report.succeeded == 4


@pytest.mark.asyncio
async def test_failure_is_isolated():
    async def worker(code: str) -> str:
        if code == "bad":
            raise RuntimeError("upstream broke")
        await asyncio.sleep(0)
        return code.upper()

    report = await run_bounded(["a", "bad", "c"], worker, limit=2)

    assert report.results == ["A", None, "C"]
    assert len(report.failures) == 1
    item, error = report.failures[0]
    assert item == "bad"
    assert isinstance(error, RuntimeError)
    assert report.succeeded == 2


@pytest.mark.asyncio
async def test_never_exceeds_limit():
    in_flight = 0
    peak = 0

    async def worker(_):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    await run_bounded(list(range(20)), worker, limit=3)

    assert peak == 3


@pytest.mark.asyncio
async def test_empty_input():
    async def worker(_):
        raise AssertionError("not called")

    report = await run_bounded([], worker)
    assert report.results == []
    assert report.failures == []


@pytest.mark.asyncio
async def test_invalid_limit():
    async def worker(_):
        return None

    with pytest.raises(ValueError):
        await run_bounded([1], worker, limit=0)


@pytest.mark.asyncio
async def test_cancellation_propagates():
    started = asyncio.Event()
    cancelled = 0

    async def worker(_):
        nonlocal cancelled
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled += 1
            raise

    task = asyncio.create_task(run_bounded([1, 2, 3], worker, limit=2))
    await started.wait()
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert cancelled == 2
