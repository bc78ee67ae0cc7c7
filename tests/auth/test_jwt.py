"""Tests for access token creation and verification."""

import jwt
import pytest

from aneti.auth.jwt import create_access_token, verify_token
from aneti.config import get_settings


class TestAccessTokens:
    def test_round_trip_claims(self):
        token = create_access_token(42, "maria", "admin")
        payload = verify_token(token)
        assert payload["sub"] == "42"
        assert payload["username"] == "maria"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"
        assert payload["iss"] == get_settings().jwt_issuer

    def test_default_role_is_member(self):
        payload = verify_token(create_access_token(1, "joao"))
        assert payload["role"] == "member"

    def test_wrong_type_rejected(self):
        token = create_access_token(1, "joao")
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="refresh")

    def test_tampered_token_rejected(self):
        token = create_access_token(1, "joao")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token[:-4] + "AAAA")

    def test_foreign_secret_rejected(self):
        settings = get_settings()
        forged = jwt.encode(
            {"sub": "1", "type": "access", "iss": settings.jwt_issuer},
            "some-other-secret-that-is-long-enough-32b",
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(forged)

    def test_expired_token_rejected(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "jwt_access_token_expire_minutes", -1)
        token = create_access_token(1, "joao")
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)
