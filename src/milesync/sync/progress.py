"""Sync progress snapshots and the channel that carries them."""

import logging
import queue
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, Optional

__all__ = [
    "SyncPhase",
    "SyncProgress",
    "ProgressChannel",
    "ProgressSubscription",
]

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Phase of a sync run."""

    IDLE = "idle"
    FETCHING_SOURCE = "fetching_source"
    UPLOADING = "uploading"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncProgress:
    """Snapshot emitted on every phase transition and after every batch.

    Counters never decrease within one run; a FAILED snapshot keeps the
    counters reached before the failure and carries the reason in ``error``.
    """

    phase: SyncPhase = SyncPhase.IDLE
    fetched_count: int = 0
    total_to_fetch: int = 0
    uploaded_count: int = 0
    total_to_upload: int = 0
    current_batch: int = 0
    total_batches: int = 0
    error: Optional[str] = None

    def __post_init__(self) -> None:
        counters = (
            self.fetched_count,
            self.total_to_fetch,
            self.uploaded_count,
            self.total_to_upload,
            self.current_batch,
            self.total_batches,
        )
        if any(c < 0 for c in counters):
            raise ValueError(f"Progress counters must be non-negative: {counters}")
        if self.uploaded_count > self.total_to_upload:
            raise ValueError("uploaded_count exceeds total_to_upload")
        if self.current_batch > self.total_batches:
            raise ValueError("current_batch exceeds total_batches")

    @property
    def overall_progress(self) -> float:
        if self.total_to_upload <= 0:
            return 0.0
        return self.uploaded_count / self.total_to_upload

    @property
    def is_complete(self) -> bool:
        return self.phase is SyncPhase.COMPLETE

    @property
    def is_failed(self) -> bool:
        return self.phase is SyncPhase.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.is_complete or self.is_failed

    def advance(self, **changes) -> "SyncProgress":
        """Copy with ``changes`` applied."""
        return replace(self, **changes)

    def failed(self, reason: str) -> "SyncProgress":
        return replace(self, phase=SyncPhase.FAILED, error=reason)


_CLOSED = object()


class ProgressSubscription:
    """One reader's view of a channel.

    Iterating yields snapshots until (and including) the terminal one.
    """

    def __init__(self, channel: "ProgressChannel"):
        self._channel = channel
        self._queue: "queue.Queue" = queue.Queue()
        self._done = False

    def _put(self, item) -> None:
        self._queue.put(item)

    def get(self, timeout: Optional[float] = None) -> Optional[SyncProgress]:
        """Next snapshot, or None once the stream has ended.

        Raises:
            queue.Empty: Nothing arrived within ``timeout``
        """
        if self._done:
            return None
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._done = True
            return None
        if item.is_terminal:
            self._done = True
        return item

    def __iter__(self) -> Iterator[SyncProgress]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def wait(self, timeout: Optional[float] = None) -> Optional[SyncProgress]:
        """Drain the stream and return the terminal snapshot."""
        last = None
        while True:
            item = self.get(timeout=timeout)
            if item is None:
                return last if last is not None and last.is_terminal else None
            last = item

    def close(self) -> None:
        """Stop receiving snapshots."""
        self._channel._unsubscribe(self)
        self._done = True


class ProgressChannel:
    """Single-producer, multi-consumer stream of SyncProgress values.

    The stream ends after a COMPLETE or FAILED value. Subscribers that join
    late first receive the latest snapshot, so every subscriber sees the
    terminal value exactly once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[ProgressSubscription] = []
        self._listeners: list[Callable[[SyncProgress], None]] = []
        self._history: list[SyncProgress] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Optional[SyncProgress]:
        with self._lock:
            return self._history[-1] if self._history else None

    @property
    def history(self) -> list[SyncProgress]:
        with self._lock:
            return list(self._history)

    def add_listener(self, callback: Callable[[SyncProgress], None]) -> None:
        """Invoke ``callback`` once per snapshot published from now on."""
        with self._lock:
            self._listeners.append(callback)

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self)
        with self._lock:
            if self._history:
                subscription._put(self._history[-1])
            if self._closed:
                if not self._history:
                    subscription._put(_CLOSED)
            else:
                self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, progress: SyncProgress) -> None:
        """Deliver a snapshot to every listener and subscriber.

        Raises:
            RuntimeError: The stream already ended
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Progress channel is closed")
            self._history.append(progress)
            subscriptions = list(self._subscriptions)
            listeners = list(self._listeners)
            if progress.is_terminal:
                self._closed = True
                self._subscriptions.clear()

        for subscription in subscriptions:
            subscription._put(progress)

        for listener in listeners:
            try:
                listener(progress)
            except Exception:
                logger.exception("Progress listener raised; ignoring")
