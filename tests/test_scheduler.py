"""
Scheduler Tests

Unit tests for the virtual clock and the periodic job runners.
"""

import asyncio
from datetime import timedelta

import pytest

from offline_resilience.core.scheduler import AsyncioScheduler, ManualClock


class TestManualClock:
    """Test cases for ManualClock class."""

    def test_advance(self, clock):
        start = clock.now()

        clock.advance(90)

        assert clock.now() - start == timedelta(seconds=90)

    def test_cannot_move_backwards(self, clock):
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_naive_time_rejected(self):
        clock = ManualClock()
        with pytest.raises(ValueError):
            clock.set(clock.now().replace(tzinfo=None))


class TestManualScheduler:
    """Test cases for ManualScheduler class."""

    @pytest.mark.asyncio
    async def test_jobs_run_on_advance(self, scheduler):
        """Test that due jobs run as virtual time passes."""
        runs = []
        scheduler.every("tick", 30, lambda: runs.append(scheduler.clock.now()))
        await scheduler.start()

        count = await scheduler.advance(95)

        assert count == 3
        assert len(runs) == 3
        assert runs[1] - runs[0] == timedelta(seconds=30)

    @pytest.mark.asyncio
    async def test_jobs_do_not_run_before_start(self, scheduler, clock):
        runs = []
        scheduler.every("tick", 10, lambda: runs.append(1))
        start = clock.now()

        await scheduler.advance(60)

        assert runs == []
        assert clock.now() - start == timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_async_jobs_interleave_in_time_order(self, scheduler):
        """Test that multiple jobs run in order of their due times."""
        order = []

        async def slow():
            order.append("slow")

        scheduler.every("fast", 10, lambda: order.append("fast"))
        scheduler.every("slow", 25, slow)
        await scheduler.start()

        await scheduler.advance(30)

        assert order == ["fast", "fast", "slow", "fast"]

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_scheduler(self, scheduler):
        runs = []

        def broken():
            runs.append(1)
            raise RuntimeError("boom")

        scheduler.every("broken", 10, broken)
        await scheduler.start()

        await scheduler.advance(30)

        assert len(runs) == 3

    @pytest.mark.asyncio
    async def test_cancel(self, scheduler):
        runs = []
        scheduler.every("tick", 10, lambda: runs.append(1))
        await scheduler.start()
        scheduler.cancel("tick")

        await scheduler.advance(30)

        assert runs == []
        assert scheduler.job_names == []

    def test_invalid_interval(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.every("tick", 0, lambda: None)


class TestAsyncioScheduler:
    """Test cases for AsyncioScheduler class."""

    @pytest.mark.asyncio
    async def test_runs_jobs_until_stopped(self):
        """Test that jobs run on their interval and stop cleanly."""
        runs = []
        scheduler = AsyncioScheduler()
        scheduler.every("tick", 0.01, lambda: runs.append(1))

        await scheduler.start()
        assert scheduler.running is True
        await asyncio.sleep(0.1)
        await scheduler.stop()

        count = len(runs)
        assert count >= 1
        assert scheduler.running is False

        await asyncio.sleep(0.05)
        assert len(runs) == count

    @pytest.mark.asyncio
    async def test_job_error_does_not_end_loop(self):
        runs = []

        async def broken():
            runs.append(1)
            raise RuntimeError("boom")

        scheduler = AsyncioScheduler()
        scheduler.every("broken", 0.01, broken)
        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert len(runs) >= 2

    @pytest.mark.asyncio
    async def test_register_while_running(self):
        runs = []
        scheduler = AsyncioScheduler()
        await scheduler.start()

        scheduler.every("late", 0.01, lambda: runs.append(1))
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert runs
