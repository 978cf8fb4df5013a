"""Sync engine - drives workouts from the activity source to the backend."""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from ..config import Config
from .batching import batch_count, chunk
from .errors import SourceUnavailable, SyncCancelled, SyncError
from .ledger import DedupLedger
from .models import ActivityRecord
from .progress import ProgressChannel, ProgressSubscription, SyncPhase, SyncProgress
from .protocols import ActivitySourceProtocol, UploaderProtocol

__all__ = ["SyncEngine"]

logger = logging.getLogger(__name__)


class SyncEngine:
    """Single-flight state machine that runs one sync at a time.

    A run moves IDLE -> FETCHING_SOURCE -> UPLOADING -> COMPLETE, or to
    FAILED from any in-progress phase. Batches are uploaded strictly in
    order; each confirmed batch is marked in the ledger before the next
    starts, and the cursor only advances once every batch succeeded.

    Records are uploaded newest-first by end time.
    """

    def __init__(
        self,
        source: ActivitySourceProtocol,
        uploader: UploaderProtocol,
        ledger: DedupLedger,
        config: Optional[Config] = None,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        """Initialize sync engine.

        Args:
            source: Where completed workouts are read from
            uploader: Sends one batch per call
            ledger: Persisted cursor and uploaded IDs
            config: Batch size and inter-batch delay
            sleep: Waits between batches (defaults to a wait that
                ``cancel()`` interrupts)
        """
        self.source = source
        self.uploader = uploader
        self.ledger = ledger
        self.config = config or Config()

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._sleep = sleep or self._cancel_event.wait
        self._channel: Optional[ProgressChannel] = None
        self._thread: Optional[threading.Thread] = None
        self._progress = SyncProgress()
        self._last_error: Optional[str] = None

    # -- State ------------------------------------------------------------

    @property
    def is_syncing(self) -> bool:
        return self._run_lock.locked()

    @property
    def current_progress(self) -> SyncProgress:
        return self._progress

    @property
    def last_error(self) -> Optional[str]:
        """Human-readable reason of the last failed run, if any."""
        return self._last_error

    @property
    def last_sync_date(self) -> Optional[datetime]:
        return self.ledger.cursor()

    def is_first_time_sync(self) -> bool:
        """True if no run has ever completed (no cursor persisted)."""
        return self.ledger.cursor() is None

    # -- Public API -------------------------------------------------------

    def sync(
        self, on_progress: Optional[Callable[[SyncProgress], None]] = None
    ) -> Optional[SyncProgress]:
        """Run a sync on the calling thread.

        Args:
            on_progress: Called with every snapshot of this run

        Returns:
            The terminal snapshot, or None if a sync was already running
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Sync already in progress")
            return None

        channel = self._begin_run()
        if on_progress:
            channel.add_listener(on_progress)
        try:
            return self._run(channel)
        finally:
            self._run_lock.release()

    def start(self) -> ProgressSubscription:
        """Run a sync on a background thread.

        If a sync is already running, no new run starts; the returned
        subscription follows the run in progress instead.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.info("Sync already in progress, joining current run")
            subscription = self.subscribe()
            if subscription is not None:
                return subscription
            # The run finished between the two checks; its channel is final
            with self._state_lock:
                channel = self._channel
            if channel is None:
                raise RuntimeError("Sync state is being reset")
            return channel.subscribe()

        channel = self._begin_run()
        subscription = channel.subscribe()

        def target() -> None:
            try:
                self._run(channel)
            finally:
                self._run_lock.release()

        self._thread = threading.Thread(target=target, name="milesync-sync", daemon=True)
        self._thread.start()
        return subscription

    def subscribe(self) -> Optional[ProgressSubscription]:
        """Follow the run in progress, or None when idle."""
        with self._state_lock:
            channel = self._channel
        if channel is None or not self.is_syncing:
            return None
        return channel.subscribe()

    def cancel(self) -> None:
        """Ask the running sync to stop before its next batch.

        Batches already confirmed stay marked in the ledger.
        """
        if self.is_syncing:
            logger.info("Sync cancellation requested")
            self._cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for a background run started with ``start``."""
        if self._thread is not None:
            self._thread.join(timeout)

    def unsynced_count(self) -> int:
        """Count source workouts not yet confirmed uploaded."""
        try:
            return len(self._fetch_eligible()[1])
        except SyncError as e:
            logger.warning(f"Failed to get unsynced count: {e}")
            return 0

    def reset_sync_state(self) -> bool:
        """Forget the cursor and uploaded IDs.

        Returns:
            False (and does nothing) while a sync is running
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Cannot reset sync state while a sync is running")
            return False
        try:
            self.ledger.reset()
            self._progress = SyncProgress()
            self._last_error = None
        finally:
            self._run_lock.release()
        return True

    # -- Run --------------------------------------------------------------

    def _begin_run(self) -> ProgressChannel:
        channel = ProgressChannel()
        with self._state_lock:
            self._channel = channel
        self._cancel_event.clear()
        self._progress = SyncProgress()
        self._last_error = None
        return channel

    def _publish(self, channel: ProgressChannel, progress: SyncProgress) -> SyncProgress:
        self._progress = progress
        channel.publish(progress)
        return progress

    def _run(self, channel: ProgressChannel) -> SyncProgress:
        progress = self._publish(channel, SyncProgress(phase=SyncPhase.FETCHING_SOURCE))
        try:
            return self._execute(channel, progress)
        except SyncError as e:
            reason = str(e) or e.__class__.__name__
            logger.error(f"Sync failed: {reason}")
        except Exception as e:
            reason = f"Unexpected error: {e}"
            logger.exception("Sync failed with an unexpected error")

        self._last_error = reason
        return self._publish(channel, self._progress.failed(reason))

    def _execute(self, channel: ProgressChannel, progress: SyncProgress) -> SyncProgress:
        fetched, records = self._fetch_eligible()
        logger.info(f"Fetched {len(fetched)} workouts, {len(records)} not yet uploaded")

        if not records:
            logger.info("No new workouts to sync")
            self._advance_cursor(fetched)
            return self._publish(channel, SyncProgress(phase=SyncPhase.COMPLETE))

        batch_size = self.config.sync.batch_size
        batches = chunk(records, batch_size)
        total = len(records)
        progress = self._publish(
            channel,
            progress.advance(
                phase=SyncPhase.UPLOADING,
                fetched_count=len(fetched),
                total_to_fetch=len(fetched),
                total_to_upload=total,
                total_batches=batch_count(total, batch_size),
            ),
        )

        uploaded = 0
        for index, batch in enumerate(batches, start=1):
            if self._cancel_event.is_set():
                raise SyncCancelled()

            progress = self._publish(channel, progress.advance(current_batch=index))
            logger.info(f"Uploading batch {index}/{len(batches)} ({len(batch)} workouts)")

            ids = [record.id for record in batch]
            self.ledger.set_pending(ids)
            result = self.uploader.upload(batch)
            if not result.success:
                raise result.error or SyncError("Upload failed")

            self.ledger.mark_uploaded(ids)
            self.ledger.clear_pending()
            uploaded += len(batch)
            progress = self._publish(channel, progress.advance(uploaded_count=uploaded))

            if index < len(batches):
                self._pause_between_batches()

        self._advance_cursor(fetched)
        logger.info(f"Sync complete: {uploaded} workouts uploaded")
        return self._publish(channel, progress.advance(phase=SyncPhase.COMPLETE))

    def _pause_between_batches(self) -> None:
        # A cancel during the pause is seen at the top of the next batch
        delay = self.config.sync.inter_batch_delay
        if delay > 0:
            self._sleep(delay)

    def _advance_cursor(self, fetched: list[ActivityRecord]) -> None:
        """Move the cursor to the newest fetched workout the ledger holds.

        That includes workouts confirmed by an earlier, partially failed
        run, which were filtered out of this run's uploads.
        """
        uploaded_ids = self.ledger.uploaded_ids()
        confirmed = [record.end_time for record in fetched if record.id in uploaded_ids]
        if confirmed:
            self.ledger.advance_cursor(max(confirmed))

    def _fetch_eligible(self) -> tuple[list[ActivityRecord], list[ActivityRecord]]:
        """Pull from the source and drop what the backend already has.

        Returns:
            (everything the source returned, records still to upload)
        """
        cursor = self.ledger.cursor()
        try:
            if cursor is None:
                fetched = list(self.source.fetch_all())
            else:
                fetched = list(self.source.fetch_since(cursor))
        except SourceUnavailable:
            raise
        except Exception as e:
            raise SourceUnavailable(f"Activity source unavailable: {e}") from e

        uploaded_ids = self.ledger.uploaded_ids()
        eligible = [
            record
            for record in fetched
            if (cursor is None or record.end_time > cursor)
            and record.id not in uploaded_ids
        ]

        # A source may return the same session twice; upload it once
        seen: set[str] = set()
        unique = []
        for record in sorted(eligible, key=lambda r: r.end_time, reverse=True):
            if record.id not in seen:
                seen.add(record.id)
                unique.append(record)
        return fetched, unique
