"""JWT access token helpers.

Only the ``exp`` claim is read; signatures are the backend's business.
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Optional

__all__ = ["get_expiration_date", "is_token_expired", "is_token_valid"]


def get_expiration_date(token: str) -> Optional[datetime]:
    """Decode the ``exp`` claim of a JWT.

    Args:
        token: JWT string (header.payload.signature)

    Returns:
        Expiration time in UTC, or None if the token cannot be decoded
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
        exp = claims["exp"]
        return datetime.fromtimestamp(float(exp), tz=timezone.utc)
    except (ValueError, TypeError, KeyError, OverflowError):
        return None


def is_token_expired(
    token: str, buffer_seconds: float = 60, now: Optional[datetime] = None
) -> bool:
    """Check if a token is expired or expires within ``buffer_seconds``.

    Undecodable tokens count as expired.
    """
    expiration = get_expiration_date(token)
    if expiration is None:
        return True
    now = now or datetime.now(timezone.utc)
    return now >= expiration - timedelta(seconds=buffer_seconds)


def is_token_valid(token: Optional[str]) -> bool:
    """True if the token exists and is not expired."""
    if not token:
        return False
    return not is_token_expired(token)
