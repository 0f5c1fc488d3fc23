"""
Fixed-interval driver for the update job.

Runs one sweep immediately, then one every `interval` seconds until the stop
event is set. The interval is clamped up to a 30 second floor. A sweep that
raises is logged and the schedule continues.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from rewardwatch.core.config.config import Config
from rewardwatch.core.logging.logger import get_logger
from rewardwatch.modules.updates.job import SweepReport, UpdateJob

logger = get_logger(__name__)


class UpdateScheduler:
    def __init__(self, job: UpdateJob, interval_seconds: int, stop_event: asyncio.Event) -> None:
        self.job = job
        self.interval_seconds = Config.clamp_update_interval(interval_seconds)
        self.stop_event = stop_event
        self.last_report: Optional[SweepReport] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="update-scheduler")
        return self._task

    async def wait_stopped(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop to drain after the stop event; cancel it on timeout."""
        if self._task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Update scheduler did not drain in time; cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        logger.info(
            "Background updates started",
            extra={"interval_seconds": self.interval_seconds},
        )
        try:
            while not self.stop_event.is_set():
                try:
                    self.last_report = await self.job.run_sweep(self.stop_event)
                except Exception:
                    logger.exception("Update sweep raised; continuing schedule")

                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    continue
        finally:
            logger.info("Background updates stopped")
