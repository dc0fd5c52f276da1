"""
HS256 JWT token management.

Two principals share one signing secret: Mini App users (``role="user"``)
and console managers (``role="manager"``). The ``role`` claim keeps a user
token from being accepted on the admin surface and vice versa.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import jwt

from questhub.config import get_settings

Role = Literal["user", "manager"]


def _encode(payload: dict[str, Any]) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(subject_id: uuid.UUID, role: Role = "user") -> str:
    """
    Create a short-lived access token.

    Args:
        subject_id: The user's or manager's database ID.
        role: Which principal the token identifies.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(subject_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return _encode(payload)


def create_refresh_token(subject_id: uuid.UUID, role: Role = "user") -> str:
    """Create a long-lived refresh token with a unique ``jti``."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(subject_id),
        "role": role,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_refresh_token_expire_days),
        "iss": settings.jwt_issuer,
        "type": "refresh",
    }
    return _encode(payload)


def verify_token(token: str, expected_type: str = "access", expected_role: Role | None = None) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The encoded JWT string.
        expected_type: Expected token type ("access" or "refresh").
        expected_role: If given, the ``role`` claim must match.

    Returns:
        Decoded payload dictionary.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or of the wrong type or role.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if expected_role is not None and payload.get("role") != expected_role:
        msg = "Token is not valid for this audience"
        raise jwt.InvalidTokenError(msg)

    return payload
