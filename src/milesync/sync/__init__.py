"""Sync module - moves recorded workouts to the Mile A Day backend."""

from .batching import batch_count, chunk
from .errors import (
    NotAuthenticated,
    SourceUnavailable,
    SyncCancelled,
    SyncError,
    TerminalFailure,
    TransientFailure,
)
from .http_client import ApiClient, ApiClientError
from .ledger import DedupLedger
from .models import ActivityRecord, ActivityType, DistanceSample, WorkoutSplit
from .payload import WorkoutPayload, encode_batch
from .progress import ProgressChannel, ProgressSubscription, SyncPhase, SyncProgress
from .protocols import (
    ActivitySourceProtocol,
    KeyValueStoreProtocol,
    TransportProtocol,
    UploaderProtocol,
)
from .retry import RetryConfig, retry_with_backoff
from .splits import calculate_splits
from .store import MemoryKeyValueStore, SqliteKeyValueStore
from .sync_engine import SyncEngine
from .uploader import Uploader, UploadResult

__all__ = [
    "ActivityRecord",
    "ActivitySourceProtocol",
    "ActivityType",
    "ApiClient",
    "ApiClientError",
    "DedupLedger",
    "DistanceSample",
    "KeyValueStoreProtocol",
    "MemoryKeyValueStore",
    "NotAuthenticated",
    "ProgressChannel",
    "ProgressSubscription",
    "RetryConfig",
    "SourceUnavailable",
    "SqliteKeyValueStore",
    "SyncCancelled",
    "SyncEngine",
    "SyncError",
    "SyncPhase",
    "SyncProgress",
    "TerminalFailure",
    "TransientFailure",
    "TransportProtocol",
    "UploadResult",
    "Uploader",
    "UploaderProtocol",
    "WorkoutPayload",
    "WorkoutSplit",
    "batch_count",
    "calculate_splits",
    "chunk",
    "encode_batch",
    "retry_with_backoff",
]
