"""
Orchestrator - Periodic Scheduler.

Runs async jobs on wall-clock interval boundaries (a 60 second interval
fires at every whole minute). A failing run is logged and the loop keeps
going; runs of one job never overlap.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


class PeriodicJob:
    """
    Background loop around one async job.

    Usage:
        job = PeriodicJob("health", 60, monitor.run_all_checks)
        await job.start()
        ...
        await job.stop()
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        job: Callable[[], Awaitable[Any]],
        clock: Optional[ClockProtocol] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._job = job
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> bool:
        """Run the job once. Returns False if it raised."""
        self.runs += 1
        try:
            await self._job()
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"[{self.name}] Job run failed: {e}", exc_info=True)
            return False

    async def run_forever(self) -> None:
        """Run on every interval boundary until stopped."""
        self._running = True
        while self._running:
            await self._sleep(self._clock.seconds_until_next(self.interval_seconds))
            if not self._running:
                break
            await self.run_once()

    async def start(self) -> None:
        """Start the loop as a background task."""
        if self._task is not None and not self._task.done():
            return

        self._running = True
        self._task = asyncio.create_task(self.run_forever())
        logger.info(f"[{self.name}] Scheduled every {self.interval_seconds:g}s")

    async def stop(self) -> None:
        """Stop the loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(f"[{self.name}] Stopped")

    async def wait(self) -> None:
        """Block until the loop ends."""
        if self._task is not None:
            await self._task
