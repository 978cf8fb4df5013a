"""Access and refresh tokens kept in the system keychain."""

import logging
from dataclasses import dataclass, replace
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["AuthTokens", "TokenStore"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "Mile A Day Sync"

# One keychain entry per value; a refresh rewrites the two tokens only
ACCESS_TOKEN_KEY = "authToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_ID_KEY = "backendUserId"


@dataclass(frozen=True)
class AuthTokens:
    """The signed-in user's bearer token pair."""

    access_token: str
    refresh_token: Optional[str]
    user_id: Optional[str]

    def refreshed(self, access_token: str, refresh_token: str) -> "AuthTokens":
        """Copy with a new token pair for the same user."""
        return replace(self, access_token=access_token, refresh_token=refresh_token)


class TokenStore:
    """Reads and rotates the tokens used by ``ApiClient``.

    Keychain failures are logged and reported as "nothing stored"; a sync
    run then ends as not authenticated rather than crashing.
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        self.service_name = service_name

    def load(self) -> Optional[AuthTokens]:
        """Tokens for the signed-in user, or None when signed out."""
        try:
            access_token = keyring.get_password(self.service_name, ACCESS_TOKEN_KEY)
            if not access_token:
                return None
            return AuthTokens(
                access_token=access_token,
                refresh_token=keyring.get_password(self.service_name, REFRESH_TOKEN_KEY),
                user_id=keyring.get_password(self.service_name, USER_ID_KEY),
            )
        except KeyringError as e:
            logger.error(f"Failed to read tokens from keychain: {e}")
            return None

    def sign_in(self, tokens: AuthTokens) -> bool:
        """Persist a full token set after the user signs in.

        Returns:
            True if every entry was written
        """
        if not self.update_tokens(tokens.access_token, tokens.refresh_token):
            return False
        if tokens.user_id is None:
            return True
        return self._set(USER_ID_KEY, tokens.user_id)

    def update_tokens(self, access_token: str, refresh_token: Optional[str]) -> bool:
        """Replace the token pair after a successful refresh."""
        if not self._set(ACCESS_TOKEN_KEY, access_token):
            return False
        if refresh_token is None:
            return True
        return self._set(REFRESH_TOKEN_KEY, refresh_token)

    def clear(self) -> None:
        """Forget the tokens once the refresh token has been rejected."""
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_ID_KEY):
            try:
                keyring.delete_password(self.service_name, key)
            except PasswordDeleteError:
                pass  # not stored
            except KeyringError as e:
                logger.error(f"Failed to delete {key} from keychain: {e}")
        logger.info("Stored tokens cleared")

    def _set(self, key: str, value: str) -> bool:
        try:
            keyring.set_password(self.service_name, key, value)
            return True
        except KeyringError as e:
            logger.error(f"Failed to write {key} to keychain: {e}")
            return False
