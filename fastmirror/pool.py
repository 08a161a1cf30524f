"""Bounded concurrency pool.

Runs coroutine factories with a fixed number of workers.  Each worker
takes the next queued task as soon as its current one finishes, so the
number of tasks in flight stays at ``min(limit, len(tasks))`` until the
queue drains.  Results come back in task order regardless of which
finished first.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Sequence

from fastmirror.config import MAX_CONCURRENCY, MIN_CONCURRENCY

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]

# Signature: (task_index, result_or_exception)
ResultCallback = Callable[[int, Any], None]


def default_limit(hint: Optional[int] = None) -> int:
    """Pool limit from a parallelism hint (CPU count by default), clamped to [2, 6]."""
    if hint is None:
        hint = os.cpu_count() or MIN_CONCURRENCY
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, hint))


async def run_bounded(
    tasks: Sequence[TaskFactory],
    limit: int,
    admission_delay: float = 0.0,
    on_result: Optional[ResultCallback] = None,
) -> list[Any]:
    """Run *tasks* with at most *limit* in flight and return their results.

    Parameters
    ----------
    tasks:
        Zero-argument callables returning an awaitable.  Nothing is
        started until a worker admits it.
    limit:
        Maximum number of tasks in flight.
    admission_delay:
        Seconds to wait between successive admissions, to avoid bursts.
    on_result:
        Optional callable invoked as each task completes, from the
        completing worker.

    Returns
    -------
    list
        One entry per task, aligned with *tasks*.  A task that raised
        leaves its exception in its slot, as ``asyncio.gather`` does with
        ``return_exceptions=True``; no task is ever dropped.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    results: list[Any] = [None] * len(tasks)
    if not tasks:
        return results

    next_index = 0
    admitted = 0
    admission_lock = asyncio.Lock()

    async def _admit() -> Optional[int]:
        nonlocal next_index, admitted
        async with admission_lock:
            if next_index >= len(tasks):
                return None
            if admitted and admission_delay > 0:
                await asyncio.sleep(admission_delay)
            index = next_index
            next_index += 1
            admitted += 1
            return index

    async def _worker() -> None:
        while True:
            index = await _admit()
            if index is None:
                return
            try:
                result = await tasks[index]()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Pool task %d failed", index)
                result = exc
            results[index] = result
            if on_result is not None:
                on_result(index, result)

    workers = [asyncio.create_task(_worker()) for _ in range(min(limit, len(tasks)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for worker in workers:
            worker.cancel()
        raise
    return results
