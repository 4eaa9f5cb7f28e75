"""Scheduler service - periodic housekeeping for the local notification state.

Two jobs run on the event loop:
- history refresh: the polling safety net behind change events, so observers
  resynchronise even if a writer in another context emitted nothing here
- dedup cleanup: purges fingerprints that fell out of the dedup window
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .dedup import DeduplicationEngine
from .history import HistoryStore

logger = logging.getLogger(__name__)

HISTORY_REFRESH_SECONDS = 5
DEDUP_CLEANUP_SECONDS = 60


class SchedulerService:
    """Runs the history refresh and dedup cleanup jobs."""

    def __init__(
        self,
        history: HistoryStore,
        dedup: DeduplicationEngine,
        refresh_seconds: int = HISTORY_REFRESH_SECONDS,
        cleanup_seconds: int = DEDUP_CLEANUP_SECONDS,
    ):
        self._history = history
        self._dedup = dedup
        self._refresh_seconds = refresh_seconds
        self._cleanup_seconds = cleanup_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler (must be called from a running event loop)."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self._refresh_history,
            trigger=IntervalTrigger(seconds=self._refresh_seconds),
            id="refresh_history",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=self._refresh_seconds,
        )

        self.scheduler.add_job(
            self._cleanup_dedup,
            trigger=IntervalTrigger(seconds=self._cleanup_seconds),
            id="cleanup_dedup",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (history refresh={self._refresh_seconds}s, "
            f"dedup cleanup={self._cleanup_seconds}s)"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def _refresh_history(self):
        try:
            if await self._history.refresh():
                logger.debug("History changed outside this context, observers notified")
        except Exception as e:
            logger.error(f"Error refreshing history: {e}")

    async def _cleanup_dedup(self):
        try:
            await self._dedup.cleanup()
        except Exception as e:
            logger.error(f"Error cleaning dedup data: {e}")
