"""Authenticated HTTP client for the Mile A Day backend."""

import logging
import threading
from typing import Any, Optional

import requests

from ..auth.token_store import AuthTokens, TokenStore
from ..auth.tokens import is_token_expired
from ..config import DEFAULT_API_URL, DEFAULT_REQUEST_TIMEOUT

__all__ = [
    "ApiClient",
    "ApiClientError",
    "NoCredentialsError",
    "NetworkError",
    "InvalidResponseError",
    "ServerError",
    "BadRequestError",
    "NotFoundError",
    "UnauthorizedError",
    "TokenRefreshError",
    "CredentialInvalidError",
]

logger = logging.getLogger(__name__)


class ApiClientError(Exception):
    """Backend client error."""

    pass


class NoCredentialsError(ApiClientError):
    """No access token stored at all."""

    pass


class NetworkError(ApiClientError):
    """Connection failure or request timeout."""

    pass


class InvalidResponseError(ApiClientError):
    """A 2xx response whose body could not be decoded."""

    pass


class ServerError(ApiClientError):
    """Non-2xx response without a more specific mapping."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Server error: {status_code}")


class BadRequestError(ServerError):
    """400: the backend rejected the payload."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(400, f"Bad request: {message}")


class NotFoundError(ServerError):
    """404: resource not found."""

    def __init__(self) -> None:
        super().__init__(404, "Resource not found")


class UnauthorizedError(ServerError):
    """401 that persisted after a token refresh."""

    def __init__(self) -> None:
        super().__init__(401, "Unauthorized access")


class TokenRefreshError(ApiClientError):
    """The refresh endpoint failed in a way that may succeed later."""

    pass


class CredentialInvalidError(ApiClientError):
    """The refresh token is permanently invalid; the user must sign in again."""

    pass


class ApiClient:
    """HTTP client with bearer auth and automatic token refresh.

    Handles:
    - Session management
    - Authentication headers
    - Refreshing an expired access token before the request
    - One refresh-and-retry when the backend answers 401
    - Mapping status codes to typed errors

    Retrying transient failures is left to the caller.
    """

    USER_AGENT = "MileADay-Sync/1.0.0"
    REFRESH_ENDPOINT = "auth/refresh"

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        credentials: Optional[AuthTokens] = None,
        token_store: Optional[TokenStore] = None,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize API client.

        Args:
            api_url: Backend base URL
            credentials: Tokens to use (loaded from ``token_store`` if None)
            token_store: Where rotated tokens are written back
            timeout: Request timeout in seconds
            session: Optional requests session (for dependency injection/testing)
        """
        self.api_url = api_url.rstrip("/")
        self.token_store = token_store
        if credentials is None and token_store is not None:
            credentials = token_store.load()
        self.credentials = credentials
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None  # Track if we created the session
        self._refresh_lock = threading.Lock()

    @property
    def user_id(self) -> Optional[str]:
        return self.credentials.user_id if self.credentials else None

    def is_authenticated(self) -> bool:
        """True if an access token is available (it may still need a refresh)."""
        return bool(self.credentials and self.credentials.access_token)

    def set_credentials(self, credentials: AuthTokens) -> None:
        """Set authentication credentials."""
        self.credentials = credentials

    def clear_credentials(self) -> None:
        """Clear authentication credentials."""
        self.credentials = None

    def _get_headers(self, access_token: Optional[str] = None) -> dict:
        """Get request headers with authentication."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.USER_AGENT,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _url(self, endpoint: str) -> str:
        return f"{self.api_url}/{endpoint.lstrip('/')}"

    def request(self, method: str, endpoint: str, data: Optional[Any] = None) -> dict:
        """Make an authenticated request to the backend.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to api_url)
            data: JSON-serialisable request body

        Returns:
            Response data as dict

        Raises:
            NoCredentialsError: No access token is stored
            CredentialInvalidError: Refresh token rejected for good
            ApiClientError: For every other failure
        """
        if not self.is_authenticated():
            raise NoCredentialsError("User not authenticated")

        access_token = self.credentials.access_token
        if is_token_expired(access_token):
            logger.info("Access token expired, refreshing...")
            access_token = self._refresh(access_token)

        try:
            return self._send(method, endpoint, data, access_token)
        except UnauthorizedError:
            logger.info(f"{method} {endpoint} returned 401, refreshing token and retrying once")
            access_token = self._refresh(access_token)
            return self._send(method, endpoint, data, access_token)

    def _send(
        self, method: str, endpoint: str, data: Optional[Any], access_token: str
    ) -> dict:
        url = self._url(endpoint)
        kwargs: dict = {
            "timeout": self.timeout,
            "headers": self._get_headers(access_token),
        }
        if data is not None:
            kwargs["json"] = data

        try:
            response = self._session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise NetworkError("Request timed out") from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError("Cannot connect to backend") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(str(e)) from e

        logger.debug(f"{method} {endpoint} - Status: {response.status_code}")
        status = response.status_code

        if 200 <= status < 300:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise InvalidResponseError("Invalid response from server") from e
        if status == 401:
            raise UnauthorizedError()
        if status == 400:
            raise BadRequestError(self._error_detail(response) or "Bad request")
        if status == 404:
            raise NotFoundError()
        raise ServerError(status)

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or "")
        return ""

    def _refresh(self, stale_token: str) -> str:
        """Exchange the refresh token for a new token pair.

        Concurrent callers that saw the same stale token share one refresh.

        Returns:
            The new access token
        """
        with self._refresh_lock:
            credentials = self.credentials
            if credentials is None:
                raise NoCredentialsError("User not authenticated")
            if credentials.access_token != stale_token:
                return credentials.access_token
            if not credentials.refresh_token:
                raise CredentialInvalidError("No refresh token available")

            try:
                response = self._session.post(
                    self._url(self.REFRESH_ENDPOINT),
                    json={"refreshToken": credentials.refresh_token},
                    headers=self._get_headers(),
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                raise TokenRefreshError(f"Token refresh failed: {e}") from e

            if response.status_code == 403:
                logger.warning("Refresh token rejected (403), signing out")
                # Later runs stop at NotAuthenticated instead of retrying a dead token
                self.credentials = None
                if self.token_store is not None:
                    self.token_store.clear()
                raise CredentialInvalidError("Invalid or expired refresh token")
            if response.status_code != 200:
                raise TokenRefreshError(
                    f"Token refresh failed with status {response.status_code}"
                )

            try:
                body = response.json()
                refreshed = credentials.refreshed(body["accessToken"], body["refreshToken"])
            except (ValueError, KeyError, TypeError) as e:
                raise TokenRefreshError("Failed to decode refresh response") from e

            self.credentials = refreshed
            if self.token_store is not None:
                self.token_store.update_tokens(refreshed.access_token, refreshed.refresh_token)
            logger.info("Access token refreshed")
            return refreshed.access_token

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
