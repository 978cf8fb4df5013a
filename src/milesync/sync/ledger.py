"""Dedup ledger: which workouts the backend has already accepted."""

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from .protocols import KeyValueStoreProtocol

__all__ = [
    "DedupLedger",
    "LAST_SYNCED_KEY",
    "UPLOADED_IDS_KEY",
    "PENDING_QUEUE_KEY",
]

logger = logging.getLogger(__name__)

LAST_SYNCED_KEY = "lastSyncedWorkoutDate"
UPLOADED_IDS_KEY = "uploadedWorkoutIds"
PENDING_QUEUE_KEY = "pendingUploadQueue"


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DedupLedger:
    """Persisted uploaded-ID set plus the "last synced" cursor.

    Every mutation writes straight through to the key-value store; the
    ledger keeps no authoritative in-memory copy, so two ledgers over the
    same store always agree.
    """

    def __init__(self, store: KeyValueStoreProtocol):
        self.store = store
        self._lock = threading.RLock()

    # Cursor

    def cursor(self) -> Optional[datetime]:
        """End time of the most recently confirmed workout, or None."""
        raw = self.store.get(LAST_SYNCED_KEY)
        if not raw:
            return None
        try:
            return _as_utc(datetime.fromisoformat(raw))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unreadable sync cursor {raw!r}")
            return None

    def advance_cursor(self, to: datetime) -> bool:
        """Move the cursor forward to ``to``.

        No-op when ``to`` is not later than the current cursor, so an
        out-of-order completion can never move it backwards.

        Returns:
            True if the cursor moved
        """
        to = _as_utc(to)
        with self._lock:
            current = self.cursor()
            if current is not None and to <= current:
                logger.debug(f"Cursor stays at {current.isoformat()} (offered {to.isoformat()})")
                return False
            self.store.set(LAST_SYNCED_KEY, to.isoformat())
        logger.info(f"Sync cursor advanced to {to.isoformat()}")
        return True

    # Uploaded IDs

    def uploaded_ids(self) -> frozenset[str]:
        """All workout IDs confirmed uploaded in this cursor epoch."""
        return frozenset(self.store.get(UPLOADED_IDS_KEY) or [])

    def is_uploaded(self, workout_id: str) -> bool:
        return workout_id in self.uploaded_ids()

    def mark_uploaded(self, workout_ids: Iterable[str]) -> None:
        """Union ``workout_ids`` into the persisted set."""
        workout_ids = set(workout_ids)
        if not workout_ids:
            return
        with self._lock:
            merged = set(self.uploaded_ids()) | workout_ids
            self.store.set(UPLOADED_IDS_KEY, sorted(merged))
        logger.debug(f"Marked {len(workout_ids)} workouts uploaded ({len(merged)} total)")

    # Pending queue (batch in flight)

    def pending_ids(self) -> list[str]:
        return list(self.store.get(PENDING_QUEUE_KEY) or [])

    def set_pending(self, workout_ids: Iterable[str]) -> None:
        with self._lock:
            self.store.set(PENDING_QUEUE_KEY, list(workout_ids))

    def clear_pending(self) -> None:
        with self._lock:
            self.store.delete(PENDING_QUEUE_KEY)

    def reset(self) -> None:
        """Clear cursor, uploaded IDs and pending queue together."""
        with self._lock:
            self.store.delete(LAST_SYNCED_KEY, UPLOADED_IDS_KEY, PENDING_QUEUE_KEY)
        logger.info("Sync state reset")
