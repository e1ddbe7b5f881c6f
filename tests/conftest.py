"""Shared fixtures: in-memory storage, a hand-driven scheduler and fake gateways."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from bookflow.core.scheduler import Scheduler
from bookflow.domain.verification_state import VerificationStatus
from bookflow.gateways.base import GatewayType, VerificationGateway, VerificationResult
from bookflow.services.booking_store import BookingDataStore
from bookflow.services.storage_backends import MemoryStorage


class ManualTask:
    def __init__(self, due: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when a test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.tasks: list[ManualTask] = []

    def call_later(self, delay: float, callback: Callable[[], Awaitable[None]]) -> ManualTask:
        task = ManualTask(self.now + max(delay, 0.0), callback)
        self.tasks.append(task)
        return task

    @property
    def pending(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled]

    async def _run_next(self, until: float | None) -> bool:
        due = [t for t in self.pending if until is None or t.due <= until]
        if not due:
            return False
        task = min(due, key=lambda t: t.due)
        self.tasks.remove(task)
        self.now = max(self.now, task.due)
        await task.callback()
        return True

    async def advance(self, seconds: float = 0.0) -> None:
        """Move the clock forward, running every callback that falls due."""
        target = self.now + seconds
        while await self._run_next(target):
            pass
        self.now = target

    async def run_until_idle(self, max_runs: int = 1000) -> int:
        """Run callbacks in due order until nothing is scheduled."""
        runs = 0
        while runs < max_runs and await self._run_next(None):
            runs += 1
        return runs


class ScriptedGateway(VerificationGateway):
    """Answers with a script of statuses or exceptions; the last entry repeats.

    When ``hold`` is set, each request waits on it before answering.
    """

    def __init__(self, *script: str | Exception, hold: asyncio.Event | None = None) -> None:
        self.script = list(script) or ["pending"]
        self.hold = hold
        self.calls: list[tuple[str, str, str | None]] = []
        self.closed = False

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STATIC

    async def verify(
        self,
        reference: str,
        service_type: str,
        booking_id: str | None = None,
    ) -> VerificationResult:
        self.calls.append((reference, service_type, booking_id))
        if self.hold is not None:
            await self.hold.wait()
        entry = self.script[min(len(self.calls), len(self.script)) - 1]
        if isinstance(entry, Exception):
            raise entry
        status = VerificationStatus(entry)
        data = {"bookingReference": f"BK-{reference}"} if status == VerificationStatus.SUCCESS else None
        return VerificationResult(reference=reference, status=status, data=data, message=entry)

    async def close(self) -> None:
        self.closed = True


class CallbackRecorder:
    """Collects poller callbacks."""

    def __init__(self) -> None:
        self.successes: list[VerificationResult] = []
        self.failures: list[Exception] = []
        self.timeouts = 0

    def on_success(self, result: VerificationResult) -> None:
        self.successes.append(result)

    def on_failure(self, error: Exception) -> None:
        self.failures.append(error)

    def on_timeout(self) -> None:
        self.timeouts += 1

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures) + self.timeouts

    def as_kwargs(self) -> dict:
        return {
            "on_success": self.on_success,
            "on_failure": self.on_failure,
            "on_timeout": self.on_timeout,
        }


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage) -> BookingDataStore:
    return BookingDataStore(storage, "session-1", key_prefix="test")


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()
