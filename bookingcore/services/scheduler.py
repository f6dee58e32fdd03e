"""
In-process driver for the automation cycle.
Owned by the FastAPI lifespan: started on startup, stopped on shutdown.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .. import config
from .automation_service import AutomationCycle, CycleSummary

logger = logging.getLogger(__name__)


class AutomationScheduler:
    """
    Runs `cycle.run()` on a fixed interval with a single-flight latch.

    A tick that fires while a run is still in flight is skipped, never queued.
    `settings` is anything exposing AUTOMATION_ENABLED and AUTOMATION_INTERVAL_MS
    (the config module by default); both are read once in start().
    """

    def __init__(self, cycle: AutomationCycle, settings=config):
        self.cycle = cycle
        self.settings = settings
        self.last_summary: Optional[CycleSummary] = None
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.interval_ms: Optional[int] = None
        self._latch = asyncio.Lock()
        self._timer: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def in_flight(self) -> bool:
        return self._latch.locked()

    def start(self, interval_ms: Optional[int] = None) -> bool:
        """Start the timer; the first run fires immediately. Must be called inside a running loop."""
        if self.is_running:
            logger.info("ℹ️ Automation scheduler already running")
            return False

        if not getattr(self.settings, "AUTOMATION_ENABLED", True):
            logger.info("⏸️ Automation disabled (AUTOMATION_ENABLED=false)")
            return False

        self.interval_ms = interval_ms or getattr(self.settings, "AUTOMATION_INTERVAL_MS", 60000)
        self._timer = asyncio.create_task(self._run_timer(self.interval_ms / 1000))
        logger.info(f"⏱️ Automation scheduler started (every {self.interval_ms} ms)")
        return True

    async def stop(self) -> None:
        """Cancel the timer and wait for an in-flight run to finish. Safe to call twice."""
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
            logger.info("🛑 Automation scheduler stopped")

        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)

    async def _run_timer(self, interval_seconds: float) -> None:
        while True:
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(interval_seconds)

    async def tick(self) -> bool:
        """Run one cycle unless one is already in flight. Returns False when skipped."""
        if self._latch.locked():
            logger.info("⏭️ Automation cycle still running, skipping tick")
            return False

        async with self._latch:
            try:
                self.last_summary = await self.cycle.run()
                self.last_error = None
            except Exception as e:
                # A failed run must not kill the timer
                logger.exception(f"❌ Automation cycle failed: {e}")
                self.last_summary = None
                self.last_error = str(e) or type(e).__name__
            self.last_run_at = datetime.now()
        return True

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "inFlight": self.in_flight,
            "intervalMs": self.interval_ms,
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "lastSummary": self.last_summary.to_dict() if self.last_summary else None,
            "lastError": self.last_error,
        }
