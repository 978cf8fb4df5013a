"""Protocol types for SyncEngine dependencies.

Defines the interfaces that SyncEngine requires from its collaborators,
enabling easier testing and looser coupling.
"""

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from .models import ActivityRecord


@runtime_checkable
class ActivitySourceProtocol(Protocol):
    """Interface for reading completed workouts from the local source of truth.

    Both methods raise ``SourceUnavailable`` when the source cannot be
    queried (e.g. health data permission not granted).
    """

    def fetch_all(self) -> list[ActivityRecord]: ...

    def fetch_since(self, since: datetime) -> list[ActivityRecord]: ...


@runtime_checkable
class TransportProtocol(Protocol):
    """Interface for authenticated requests against the backend."""

    @property
    def user_id(self) -> Optional[str]: ...

    def is_authenticated(self) -> bool: ...

    def request(
        self, method: str, endpoint: str, data: Optional[Any] = None
    ) -> dict: ...


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """Interface for durable flat key-value storage."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, *keys: str) -> int: ...


@runtime_checkable
class UploaderProtocol(Protocol):
    """Interface for sending one batch of workouts."""

    def upload(self, batch: Sequence[ActivityRecord]): ...
