"""Tests for credential storage and token helpers."""

import base64
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from keyring.errors import KeyringError, PasswordDeleteError

from milesync.auth.token_store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ID_KEY,
    AuthTokens,
    TokenStore,
)
from milesync.auth.tokens import get_expiration_date, is_token_expired, is_token_valid

EXP = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_jwt(claims: dict) -> str:
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"eyJhbGciOiJub25lIn0.{payload}.signature"


class TestTokens:
    """Tests for JWT helpers."""

    def test_expiration_date(self):
        """Test decoding exp."""
        token = make_jwt({"exp": EXP.timestamp(), "sub": "user-1"})

        assert get_expiration_date(token) == EXP

    def test_undecodable(self):
        """Test malformed tokens."""
        assert get_expiration_date("not-a-jwt") is None
        assert get_expiration_date("a.!!!.c") is None
        assert get_expiration_date(make_jwt({"sub": "no exp"})) is None

    def test_expired_with_buffer(self):
        """Test the 60 second refresh buffer."""
        token = make_jwt({"exp": EXP.timestamp()})

        assert is_token_expired(token, now=EXP - timedelta(minutes=5)) is False
        assert is_token_expired(token, now=EXP - timedelta(seconds=30)) is True
        assert is_token_expired(token, now=EXP + timedelta(seconds=1)) is True

    def test_undecodable_counts_as_expired(self):
        """Test that garbage forces a refresh."""
        assert is_token_expired("garbage") is True

    def test_is_token_valid(self):
        """Test the convenience wrapper."""
        far_future = datetime.now(timezone.utc) + timedelta(days=1)

        assert is_token_valid(make_jwt({"exp": far_future.timestamp()})) is True
        assert is_token_valid(None) is False
        assert is_token_valid("") is False


class FakeKeyring:
    """Dict-backed stand-in for the keyring module's password API."""

    def __init__(self):
        self.passwords = {}

    def get_password(self, service, key):
        return self.passwords.get((service, key))

    def set_password(self, service, key, value):
        self.passwords[(service, key)] = value

    def delete_password(self, service, key):
        if (service, key) not in self.passwords:
            raise PasswordDeleteError("not stored")
        del self.passwords[(service, key)]


class TestTokenStore:
    """Tests for TokenStore."""

    def setup_method(self):
        """Set up test fixtures."""
        self.keyring = FakeKeyring()
        patcher = patch("milesync.auth.token_store.keyring", self.keyring)
        patcher.start()
        self.patcher = patcher
        self.store = TokenStore(service_name="test-service")
        self.tokens = AuthTokens(
            access_token="access-1", refresh_token="refresh-1", user_id="user-1"
        )

    def teardown_method(self):
        """Clean up."""
        self.patcher.stop()

    def test_signed_out(self):
        """Test that nothing stored means no tokens."""
        assert self.store.load() is None

    def test_sign_in_then_load(self):
        """Test one keychain entry per value."""
        assert self.store.sign_in(self.tokens) is True

        assert self.store.load() == self.tokens
        assert self.keyring.passwords[("test-service", ACCESS_TOKEN_KEY)] == "access-1"
        assert self.keyring.passwords[("test-service", REFRESH_TOKEN_KEY)] == "refresh-1"
        assert self.keyring.passwords[("test-service", USER_ID_KEY)] == "user-1"

    def test_update_tokens_keeps_user(self):
        """Test that a refresh rotates the pair and leaves the user ID alone."""
        self.store.sign_in(self.tokens)

        self.store.update_tokens("access-2", "refresh-2")

        assert self.store.load() == AuthTokens("access-2", "refresh-2", "user-1")

    def test_missing_refresh_token(self):
        """Test an access token stored on its own."""
        self.store.sign_in(AuthTokens("access-1", None, "user-1"))

        assert self.store.load().refresh_token is None

    def test_clear(self):
        """Test signing out, including entries that were never written."""
        self.store.sign_in(AuthTokens("access-1", "refresh-1", None))

        self.store.clear()

        assert self.store.load() is None
        assert self.keyring.passwords == {}

    def test_read_failure_is_signed_out(self):
        """Test that a keyring backend error reads as no tokens."""
        with patch.object(self.keyring, "get_password", side_effect=KeyringError("locked")):
            assert self.store.load() is None

    def test_write_failure(self):
        """Test that a keyring backend error is reported."""
        with patch.object(self.keyring, "set_password", side_effect=KeyringError("locked")):
            assert self.store.update_tokens("access-2", "refresh-2") is False

    def test_refreshed_copy(self):
        """Test AuthTokens.refreshed()."""
        refreshed = self.tokens.refreshed("access-2", "refresh-2")

        assert refreshed == AuthTokens("access-2", "refresh-2", "user-1")
        assert self.tokens.access_token == "access-1"
