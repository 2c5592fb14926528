"""
Periodic Scheduler Tests.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from core.clock import MockClock
from orchestrator import PeriodicJob


class TestPeriodicJob:
    """Tests for PeriodicJob."""

    @pytest.mark.asyncio
    async def test_run_once_logs_failure(self):
        async def broken():
            raise RuntimeError("boom")

        job = PeriodicJob("broken", 60, broken)

        assert not await job.run_once()
        assert job.runs == 1
        assert job.failures == 1

    @pytest.mark.asyncio
    async def test_aligned_to_interval_and_survives_failures(self):
        clock = MockClock(datetime(2024, 3, 1, 12, 0, 30, tzinfo=timezone.utc))
        sleeps = []
        calls = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        async def work():
            calls.append(clock.now())
            if len(calls) == 1:
                raise RuntimeError("first run fails")
            if len(calls) == 3:
                await job.stop()

        job = PeriodicJob("health", 60, work, clock=clock, sleep=fake_sleep)
        await job.run_forever()

        assert sleeps == [30, 60, 60]
        assert [call.second for call in calls] == [0, 0, 0]
        assert job.runs == 3
        assert job.failures == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        ran = asyncio.Event()

        async def work():
            ran.set()

        async def no_wait(seconds):
            await asyncio.sleep(0)

        job = PeriodicJob("health", 60, work, sleep=no_wait)
        await job.start()
        await asyncio.wait_for(ran.wait(), timeout=1)

        assert job.is_running

        await job.stop()

        assert not job.is_running
