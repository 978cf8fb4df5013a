"""Error types surfaced by a sync run."""

__all__ = [
    "SyncError",
    "SourceUnavailable",
    "NotAuthenticated",
    "TransientFailure",
    "TerminalFailure",
    "SyncCancelled",
]


class SyncError(Exception):
    """Base class for sync failures."""

    retryable = False


class SourceUnavailable(SyncError):
    """The activity source cannot be queried (e.g. permission not granted)."""

    pass


class TransientFailure(SyncError):
    """Network, timeout, 5xx or recoverable auth failure. Retried."""

    retryable = True


class TerminalFailure(SyncError):
    """Malformed request or permanently invalid credential. Not retried."""

    pass


class NotAuthenticated(TerminalFailure):
    """No credential available at all."""

    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class SyncCancelled(SyncError):
    """The run was cancelled before finishing."""

    def __init__(self, message: str = "Sync cancelled"):
        super().__init__(message)
