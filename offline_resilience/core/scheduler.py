"""
Clock and Scheduler

Time sources and periodic job runners injected into the cache store and retry
queue. Production code uses the system clock and asyncio tasks; tests use the
manual variants to advance virtual time deterministically.
"""

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

import structlog

from ..constants import get_current_timestamp

logger = structlog.get_logger(__name__)

JobCallback = Callable[[], Union[Awaitable[Any], Any]]


class Clock(Protocol):
    """Source of the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return get_current_timestamp()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        """Move the clock forward by ``seconds``."""
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("Clock time must be timezone-aware")
        self._now = moment


async def _run_callback(name: str, callback: JobCallback) -> None:
    """Run a job once, logging failures instead of raising them."""
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error("Scheduled job failed", job=name, error=str(e), exc_info=True)


class Scheduler(Protocol):
    """Runs named callbacks on a fixed interval."""

    def every(self, name: str, interval_seconds: float, callback: JobCallback) -> None: ...

    def cancel(self, name: str) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class AsyncioScheduler:
    """
    Scheduler backed by one asyncio task per job.

    Each task sleeps for its interval and then runs the callback; job errors
    are logged and the loop continues.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, tuple] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def every(self, name: str, interval_seconds: float, callback: JobCallback) -> None:
        if interval_seconds <= 0:
            raise ValueError("Job interval must be positive")
        self.cancel(name)
        self._jobs[name] = (interval_seconds, callback)
        if self._running:
            self._tasks[name] = asyncio.create_task(
                self._job_loop(name, interval_seconds, callback)
            )

    def cancel(self, name: str) -> None:
        self._jobs.pop(name, None)
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()

    async def start(self) -> None:
        """Start background tasks for all registered jobs."""
        if self._running:
            return
        self._running = True
        for name, (interval, callback) in self._jobs.items():
            self._tasks[name] = asyncio.create_task(
                self._job_loop(name, interval, callback)
            )
        logger.info("Scheduler started", jobs=sorted(self._jobs))

    async def stop(self) -> None:
        """Cancel all background tasks and wait for them to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler stopped")

    async def _job_loop(
        self, name: str, interval_seconds: float, callback: JobCallback
    ) -> None:
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                await _run_callback(name, callback)
            except asyncio.CancelledError:
                break


@dataclass
class _ManualJob:
    interval_seconds: float
    callback: JobCallback
    next_run_at: datetime


class ManualScheduler:
    """
    Deterministic scheduler driven by a ManualClock.

    ``advance`` moves the clock forward and runs every job whose next run time
    falls inside the advanced window, in time order.
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self._jobs: Dict[str, _ManualJob] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def job_names(self) -> list:
        return sorted(self._jobs)

    def every(self, name: str, interval_seconds: float, callback: JobCallback) -> None:
        if interval_seconds <= 0:
            raise ValueError("Job interval must be positive")
        self._jobs[name] = _ManualJob(
            interval_seconds=interval_seconds,
            callback=callback,
            next_run_at=self.clock.now() + timedelta(seconds=interval_seconds),
        )

    def cancel(self, name: str) -> None:
        self._jobs.pop(name, None)

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    async def advance(self, seconds: float) -> int:
        """Advance virtual time, running due jobs. Returns the number of runs."""
        target = self.clock.now() + timedelta(seconds=seconds)
        runs = 0
        while self._running:
            due = [
                (job.next_run_at, name)
                for name, job in self._jobs.items()
                if job.next_run_at <= target
            ]
            if not due:
                break
            run_at, name = min(due)
            job = self._jobs[name]
            self.clock.set(run_at)
            job.next_run_at = run_at + timedelta(seconds=job.interval_seconds)
            await _run_callback(name, job.callback)
            runs += 1
        self.clock.set(target)
        return runs
