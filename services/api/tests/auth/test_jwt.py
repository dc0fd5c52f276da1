"""Tests for JWT token creation and verification."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from questhub.auth.jwt import create_access_token, create_refresh_token, verify_token
from questhub.config import get_settings


class TestTokens:
    """Test access and refresh tokens for both principals."""

    def test_access_token_round_trip(self):
        subject = uuid.uuid4()
        payload = verify_token(create_access_token(subject, "user"), expected_type="access", expected_role="user")
        assert payload["sub"] == str(subject)
        assert payload["role"] == "user"
        assert payload["iss"] == get_settings().jwt_issuer

    def test_refresh_tokens_have_unique_jti(self):
        subject = uuid.uuid4()
        first = verify_token(create_refresh_token(subject), expected_type="refresh")
        second = verify_token(create_refresh_token(subject), expected_type="refresh")
        assert first["jti"] != second["jti"]

    def test_wrong_type_rejected(self):
        token = create_refresh_token(uuid.uuid4())
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="access")

    def test_user_token_rejected_for_manager_role(self):
        token = create_access_token(uuid.uuid4(), "user")
        with pytest.raises(jwt.InvalidTokenError, match="audience"):
            verify_token(token, expected_role="manager")

    def test_expired_token(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "role": "user",
                "type": "access",
                "iss": settings.jwt_issuer,
                "iat": past,
                "exp": past + timedelta(minutes=1),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_foreign_signature(self):
        token = jwt.encode({"sub": "x", "type": "access"}, "another-secret-that-is-long-enough!!", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)
