import asyncio

import pytest

from ghdash.services.batch import batch


def test_batch_keeps_input_order_when_workers_finish_out_of_order() -> None:
    async def worker(n: int) -> int:
        await asyncio.sleep(0.01 * (5 - n))
        return n * 10

    assert asyncio.run(batch([1, 2, 3, 4], worker, concurrency=2)) == [10, 20, 30, 40]


def test_batch_never_runs_more_than_concurrency_workers() -> None:
    running = 0
    peak = 0

    async def worker(n: int) -> int:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.005)
        running -= 1
        return n

    result = asyncio.run(batch(range(10), worker, concurrency=3))

    assert result == list(range(10))
    assert peak <= 3


def test_batch_of_nothing_is_empty() -> None:
    async def worker(n: int) -> int:
        return n

    assert asyncio.run(batch([], worker)) == []


def test_batch_propagates_worker_exception() -> None:
    async def worker(n: int) -> int:
        if n == 2:
            raise RuntimeError("boom")
        return n

    with pytest.raises(RuntimeError):
        asyncio.run(batch([1, 2, 3], worker, concurrency=1))


def test_failed_worker_cancels_running_siblings() -> None:
    started: dict[str, asyncio.Task] = {}

    async def worker(name: str) -> str:
        started[name] = asyncio.current_task()
        if name == "fail":
            raise RuntimeError("boom")
        await asyncio.sleep(10)
        return name

    async def run() -> asyncio.Task:
        with pytest.raises(RuntimeError):
            await batch(["fail", "slow"], worker, concurrency=2)
        return started["slow"]

    slow = asyncio.run(run())

    assert slow.cancelled()


def test_no_items_admitted_after_a_failure() -> None:
    seen = []

    async def worker(n: int) -> int:
        seen.append(n)
        if n == 1:
            raise RuntimeError("boom")
        return n

    with pytest.raises(RuntimeError):
        asyncio.run(batch([1, 2, 3], worker, concurrency=1))

    assert seen == [1]
