"""Admission-controlled worker pool for asyncio tasks."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class WorkerPool:
    """Run submitted coroutines as tasks, at most *capacity* at a time.

    Two separate concerns are handled here:

    * **admission**: a semaphore with *capacity* slots.  A task waits for a
      free slot before its work starts and gives the slot back when the work
      ends, whether it returned, raised or was cancelled.
    * **draining**: every submission is registered *before* its task exists,
      so :meth:`join` can never miss work submitted before it was called.

    Tasks are launched without limit; only their execution is bounded.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("Worker pool capacity must be at least 1.")
        self.capacity = capacity
        self._admission = asyncio.Semaphore(capacity)
        self._tasks: Set[asyncio.Task] = set()
        self._pending = 0
        self._in_flight = 0
        self._drained = asyncio.Event()
        self._drained.set()

    @property
    def pending(self) -> int:
        """Submitted tasks that have not finished yet (queued or running)."""
        return self._pending

    @property
    def in_flight(self) -> int:
        """Tasks currently holding an admission slot."""
        return self._in_flight

    def submit(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        """Schedule ``fn(*args)``; must be called from a running event loop."""
        self._pending += 1
        self._drained.clear()
        coro = self._run(fn, args)
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            self._release()
            raise
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    async def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until every submitted task has finished.

        Returns:
            ``True`` when the pool drained, ``False`` when *timeout* seconds
            passed first.  Pending tasks are left running either way.
        """
        if self._pending == 0:
            return True
        if timeout is not None and timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._drained.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def cancel(self) -> int:
        """Cancel every unfinished task and return how many were cancelled."""
        cancelled = 0
        for task in list(self._tasks):
            if task.cancel():
                cancelled += 1
        return cancelled

    async def _run(self, fn: Callable[..., Awaitable[Any]], args: tuple) -> None:
        async with self._admission:
            self._in_flight += 1
            try:
                await fn(*args)
            finally:
                self._in_flight -= 1

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._release()
        if not task.cancelled() and task.exception() is not None:
            logger.error("Pool task failed", exc_info=task.exception())

    def _release(self) -> None:
        self._pending -= 1
        if self._pending == 0:
            self._drained.set()
