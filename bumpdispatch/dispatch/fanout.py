"""Bounded concurrent fan-out with per-job failure isolation."""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def fan_out(
    jobs: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int = 5
) -> List[Tuple[T, Union[R, Exception]]]:
    """
    Run ``worker`` over every job with at most ``concurrency`` in flight.

    Returns only once every job has settled. An ordinary exception raised by
    one job is captured as that job's result and never affects its siblings.
    Cancellation is not captured: it propagates so the caller can abandon the
    pass without committing anything.

    Args:
        jobs: Work items
        worker: Async callable applied to each item
        concurrency: Maximum jobs running at once

    Returns:
        (job, result_or_exception) pairs in job order
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def run(job: T):
        async with sem:
            try:
                return job, await worker(job)
            except Exception as e:
                return job, e

    return list(await asyncio.gather(*(run(job) for job in jobs)))
