import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


def chunked(items: Sequence[InT], size: int) -> list[list[InT]]:
    """Split into consecutive chunks of at most ``size`` items, keeping order."""
    if size < 1:
        raise ValueError("size must be a positive integer")
    return [list(items[start:start + size]) for start in range(0, len(items), size)]


async def gather_bounded(
    iterable: Iterable[InT],
    worker: Callable[[InT], Awaitable[OutT]],
    *,
    concurrency: int,
    return_exceptions: bool = False,
) -> list[OutT | BaseException]:
    """Await ``worker`` over ``iterable`` with at most ``concurrency`` in flight.

    Results keep the input order. With ``return_exceptions`` a failing worker
    leaves its exception in its slot and the other workers run to completion;
    otherwise the first exception propagates like it would from ``asyncio.gather``.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    semaphore = asyncio.Semaphore(concurrency)

    async def _run(item: InT) -> OutT:
        async with semaphore:
            return await worker(item)

    return list(
        await asyncio.gather(
            *(_run(item) for item in iterable), return_exceptions=return_exceptions
        )
    )
