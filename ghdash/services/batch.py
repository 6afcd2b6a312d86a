import asyncio
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def batch(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 6,
) -> list[R]:
    """Run `worker` over `items` with at most `concurrency` admitted at a time.

    Results keep the order of `items`. Workers are expected to handle their
    own errors. An exception escaping a worker stops admission and propagates
    out of the batch once the workers still running are cancelled and awaited.
    """

    limit = max(1, concurrency)
    tasks: list[asyncio.Task[R]] = []
    in_flight: set[asyncio.Task[R]] = set()

    try:
        for item in items:
            task = asyncio.ensure_future(worker(item))
            tasks.append(task)
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
            if len(in_flight) >= limit:
                done, _ = await asyncio.wait(
                    in_flight, return_when=asyncio.FIRST_COMPLETED
                )
                for finished in done:
                    if not finished.cancelled() and finished.exception() is not None:
                        raise finished.exception()

        return list(await asyncio.gather(*tasks))
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
