"""Batch uploader: one authenticated POST per batch, with retry."""

import logging
import time
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Callable, Optional, Sequence

from ..config import SyncSettings
from .errors import NotAuthenticated, SyncError, TerminalFailure, TransientFailure
from .http_client import (
    ApiClientError,
    BadRequestError,
    CredentialInvalidError,
    NoCredentialsError,
)
from .models import ActivityRecord
from .payload import encode_batch
from .protocols import TransportProtocol
from .retry import RetryConfig, RetryExhausted, retry_with_backoff

__all__ = ["Uploader", "UploadResult", "classify_error"]

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    """Result of uploading one batch."""

    success: bool
    attempts: int = 0
    uploaded_ids: list[str] = field(default_factory=list)
    error: Optional[SyncError] = None
    message: Optional[str] = None


def classify_error(error: Exception, retry_bad_request: bool = False) -> SyncError:
    """Map a transport error onto the transient/terminal taxonomy."""
    if isinstance(error, SyncError):
        return error
    if isinstance(error, NoCredentialsError):
        return NotAuthenticated(str(error))
    if isinstance(error, CredentialInvalidError):
        return TerminalFailure(str(error))
    if isinstance(error, BadRequestError) and not retry_bad_request:
        return TerminalFailure(str(error))
    if isinstance(error, ApiClientError):
        return TransientFailure(str(error))
    return TransientFailure(f"Network error: {error}")


class Uploader:
    """Sends batches of workouts to the upload endpoint.

    Batches are all-or-nothing: a failed batch is retried whole, never
    piecemeal. The uploader keeps no ledger state; marking IDs uploaded is
    the caller's job.
    """

    ENDPOINT = "workouts/{user_id}/upload"

    def __init__(
        self,
        transport: TransportProtocol,
        settings: Optional[SyncSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        tz: Optional[tzinfo] = None,
    ):
        """Initialize uploader.

        Args:
            transport: Authenticated transport
            settings: Retry and classification settings
            sleep: Used for backoff delays (injectable for tests)
            tz: Zone for the payload's local date (machine local if None)
        """
        settings = settings or SyncSettings()
        self.transport = transport
        self.retry_bad_request = settings.retry_bad_request
        self.retry_config = RetryConfig(
            max_attempts=settings.max_attempts,
            base_delay=settings.retry_base_delay,
            jitter=settings.retry_jitter,
        )
        self._sleep = sleep
        self.tz = tz

    def upload(self, batch: Sequence[ActivityRecord]) -> UploadResult:
        """Upload a batch, retrying transient failures with backoff.

        Args:
            batch: Workouts to send in one request

        Returns:
            UploadResult; on failure ``error`` is a TransientFailure (retries
            exhausted) or TerminalFailure (not retried)
        """
        ids = [record.id for record in batch]
        if not batch:
            return UploadResult(success=True)

        if not self.transport.is_authenticated() or not self.transport.user_id:
            logger.warning("Upload skipped: user not authenticated")
            return UploadResult(success=False, error=NotAuthenticated())

        try:
            body = encode_batch(batch, self.tz)
        except ValueError as e:
            return UploadResult(success=False, error=TerminalFailure(f"Invalid workout data: {e}"))

        endpoint = self.ENDPOINT.format(user_id=self.transport.user_id)
        attempts = 0

        def do_upload() -> dict:
            nonlocal attempts
            attempts += 1
            try:
                return self.transport.request("POST", endpoint, body)
            except Exception as e:
                failure = classify_error(e, self.retry_bad_request)
                raise failure from e

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                f"Upload attempt {attempt} for {len(batch)} workouts failed: {error}. "
                f"Retrying in {delay:.1f}s..."
            )

        try:
            response = retry_with_backoff(
                do_upload,
                config=self.retry_config,
                on_retry=on_retry,
                retryable_exceptions=(TransientFailure,),
                sleep=self._sleep,
            )
        except RetryExhausted as e:
            error = e.last_error if isinstance(e.last_error, SyncError) else TransientFailure(str(e))
            logger.error(f"Batch of {len(batch)} workouts failed after {attempts} attempts: {error}")
            return UploadResult(success=False, attempts=attempts, error=error)
        except TerminalFailure as e:
            logger.error(f"Batch of {len(batch)} workouts rejected: {e}")
            return UploadResult(success=False, attempts=attempts, error=e)

        message = response.get("message") if isinstance(response, dict) else None
        logger.info(f"Uploaded batch of {len(batch)} workouts")
        return UploadResult(
            success=True, attempts=attempts, uploaded_ids=ids, message=message
        )
