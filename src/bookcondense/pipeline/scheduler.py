"""Sliding-window runner for independent async tasks."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class SchedulerTaskFailure(Exception):
    """A task raised; the whole run is abandoned without partial results."""

    index: int
    cause: BaseException

    def __str__(self) -> str:
        return f"Task {self.index} failed: {self.cause}"


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    concurrency: int,
    on_progress: Callable[[R, int], None] | None = None,
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``concurrency`` tasks in flight.

    Items are admitted from the front in input order. ``on_progress`` runs once
    per completed task, in completion order, with a completed count that grows
    by exactly one per call. Results are returned in completion order.

    The first failing task cancels every other in-flight task and surfaces as
    ``SchedulerTaskFailure``. Cancelling the run cancels in-flight tasks too.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    queue = deque(enumerate(items))
    in_flight: dict[asyncio.Task[R], int] = {}
    results: list[R] = []

    try:
        while queue or in_flight:
            while queue and len(in_flight) < concurrency:
                index, item = queue.popleft()
                in_flight[asyncio.ensure_future(worker(item))] = index

            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)

            # tasks finishing in the same wake-up are reported in admission order
            for task in sorted(done, key=in_flight.__getitem__):
                index = in_flight.pop(task)
                if task.cancelled():
                    raise SchedulerTaskFailure(index, asyncio.CancelledError())
                error = task.exception()
                if error is not None:
                    raise SchedulerTaskFailure(index, error) from error

                result = task.result()
                results.append(result)
                if on_progress is not None:
                    on_progress(result, len(results))
    finally:
        if in_flight:
            logger.debug("Cancelling %d in-flight task(s)", len(in_flight))
            for task in in_flight:
                task.cancel()
            await asyncio.gather(*in_flight, return_exceptions=True)

    return results
