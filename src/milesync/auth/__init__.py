"""Auth module - keychain-backed tokens and access token helpers."""

from .token_store import AuthTokens, TokenStore
from .tokens import get_expiration_date, is_token_expired, is_token_valid

__all__ = [
    "AuthTokens",
    "TokenStore",
    "get_expiration_date",
    "is_token_expired",
    "is_token_valid",
]
