"""Background scheduling of sync runs (launch, foreground, periodic)."""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import Config
from .sync.protocols import TransportProtocol
from .sync.progress import SyncProgress
from .sync.sync_engine import SyncEngine

__all__ = ["SyncScheduler"]

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Owns the sync scheduler and decides when a run is worth starting.

    The engine itself is single-flight, so overlapping triggers simply
    no-op; the scheduler adds policy on top (auth check, foreground
    throttling, large-sync detection).
    """

    JOB_ID = "sync_job"

    def __init__(
        self,
        engine: SyncEngine,
        config: Optional[Config] = None,
        transport: Optional[TransportProtocol] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self.engine = engine
        self.config = config or engine.config
        self.transport = transport
        self.scheduler = scheduler or BackgroundScheduler()
        self.last_result: Optional[SyncProgress] = None
        self.large_sync_in_progress = False

    def start(self) -> None:
        """Run the launch sync and start the periodic scheduler."""
        self.check_and_sync_on_launch()

        interval = self.config.sync.interval_minutes
        self.scheduler.add_job(
            self._do_sync,
            trigger=IntervalTrigger(minutes=interval),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Sync loop started (interval: {interval}m)")

    def stop(self) -> None:
        """Shut down the scheduler if running."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.engine.cancel()

    def reschedule(self, interval_minutes: int) -> None:
        """Change the sync interval on the fly."""
        self.config.sync.interval_minutes = interval_minutes
        if self.scheduler.running:
            self.scheduler.reschedule_job(
                self.JOB_ID,
                trigger=IntervalTrigger(minutes=interval_minutes),
            )

    def trigger_sync(self, job_id: str = "immediate_sync") -> None:
        """Schedule a one-off sync (e.g. after a new workout was recorded)."""
        if self.scheduler.running:
            self.scheduler.add_job(self._do_sync, id=job_id, replace_existing=True)
        else:
            self._do_sync()

    def check_and_sync_on_launch(self) -> Optional[SyncProgress]:
        """Sync if signed in and there is anything to upload.

        Returns:
            The terminal snapshot of the run, or None if nothing ran
        """
        if self.transport is not None and not self.transport.is_authenticated():
            logger.info("Skipping sync - user not authenticated")
            return None

        if self.engine.is_syncing:
            logger.info("Sync already in progress")
            return None

        unsynced = self.engine.unsynced_count()
        if unsynced == 0:
            logger.info("No new workouts to sync")
            return None

        logger.info(f"Found {unsynced} unsynced workouts")
        self.large_sync_in_progress = unsynced > self.config.sync.silent_sync_threshold
        try:
            return self._do_sync()
        finally:
            self.large_sync_in_progress = False

    def sync_on_foreground(self, now: Optional[datetime] = None) -> Optional[SyncProgress]:
        """Launch-style sync, throttled to once per foreground interval."""
        if not self.should_sync_on_foreground(now):
            logger.info("Skipping foreground sync (too soon since last sync)")
            return None
        return self.check_and_sync_on_launch()

    def should_sync_on_foreground(self, now: Optional[datetime] = None) -> bool:
        last_sync = self.engine.last_sync_date
        if last_sync is None:
            return True
        now = now or datetime.now(timezone.utc)
        elapsed = (now - last_sync).total_seconds()
        return elapsed >= self.config.sync.foreground_min_interval

    # -- internal ---------------------------------------------------------

    def _do_sync(self) -> Optional[SyncProgress]:
        """Perform a sync cycle."""
        result = self.engine.sync()
        if result is None:
            return None

        self.last_result = result
        if result.is_failed:
            logger.warning(f"Scheduled sync failed: {result.error}")
        else:
            logger.info(f"Scheduled sync complete ({result.uploaded_count} uploaded)")
        return result
