"""Cancellable delayed execution of coroutines.

The poller schedules its retries through this interface so tests can drive
time by hand instead of sleeping.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Protocol

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class ScheduledTask(Protocol):
    """Handle returned by a scheduler."""

    def cancel(self) -> None: ...


class Scheduler(ABC):
    """Runs coroutine callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: AsyncCallback) -> ScheduledTask:
        """Run ``callback()`` after ``delay`` seconds.

        Cancelling the returned handle before it fires prevents the run.
        Cancelling afterwards is a no-op and does not interrupt a callback
        that is already running.
        """
        pass

    async def shutdown(self) -> None:
        """Release whatever the scheduler still holds."""
        pass


class AsyncioScheduler(Scheduler):
    """Scheduler on top of the running asyncio loop."""

    def __init__(self) -> None:
        self._running: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: AsyncCallback) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), self._spawn, callback)

    def _spawn(self, callback: AsyncCallback) -> None:
        task = asyncio.get_running_loop().create_task(callback())
        # Keep a reference until done so the task is not garbage collected
        self._running.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Scheduled callback failed: {exc!r}")

    @property
    def running(self) -> int:
        return len(self._running)

    async def shutdown(self) -> None:
        """Cancel callbacks that are still running."""
        tasks = list(self._running)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
