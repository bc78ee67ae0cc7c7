"""
JWT access tokens.

HS* algorithms sign with ``jwt_secret``; RS*/ES* algorithms read PEM keys from
the configured paths. Tokens carry the user's role so the web app can route
admins without an extra round-trip; authorization still re-reads the user row.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from aneti.config import get_settings

_signing_key: str | None = None
_verify_key: str | None = None


def _load_keys() -> tuple[str, str]:
    """Return (signing_key, verify_key), cached after first call."""
    global _signing_key, _verify_key  # noqa: PLW0603
    if _signing_key is None or _verify_key is None:
        settings = get_settings()
        if settings.jwt_algorithm.upper().startswith("HS"):
            _signing_key = _verify_key = settings.jwt_secret
        else:
            _signing_key = Path(settings.jwt_private_key_path).read_text()
            _verify_key = Path(settings.jwt_public_key_path).read_text()
    return _signing_key, _verify_key


def reset_keys() -> None:
    """Forget cached keys (settings changed, e.g. in tests)."""
    global _signing_key, _verify_key  # noqa: PLW0603
    _signing_key = None
    _verify_key = None


def create_access_token(user_id: int, username: str, role: str = "member") -> str:
    """
    Create an access token.

    Args:
        user_id: The user's database ID.
        username: Included for display on the client.
        role: "member" or "admin".

    Returns:
        Encoded JWT string.
    """
    signing_key, _ = _load_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or of the wrong type.
    """
    _, verify_key = _load_keys()
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            verify_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
