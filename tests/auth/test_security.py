"""Tests for access token verification."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from coursegate.auth.security import decode_access_token
from coursegate.config import get_settings


def _encode(payload: dict, secret: str | None = None) -> str:
    settings = get_settings()
    return jwt.encode(
        payload,
        secret or settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def _claims(**overrides) -> dict:
    claims = {
        "sub": str(uuid4()),
        "role": "Student",
        "email": "test@example.com",
        "type": "access",
        "exp": datetime.now(UTC) + timedelta(minutes=5),
    }
    claims.update(overrides)
    return claims


class TestDecodeAccessToken:
    """Tests for decode_access_token."""

    def test_valid_token(self) -> None:
        """Should decode token and return payload."""
        claims = _claims()
        payload = decode_access_token(_encode(claims))

        assert payload["sub"] == claims["sub"]
        assert payload["role"] == "Student"
        assert payload["email"] == "test@example.com"

    def test_type_claim_is_optional(self) -> None:
        claims = _claims()
        del claims["type"]
        assert decode_access_token(_encode(claims))["role"] == "Student"

    def test_expired_token(self) -> None:
        """Should raise JWTError for expired token."""
        token = _encode(_claims(exp=datetime.now(UTC) - timedelta(seconds=1)))

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_invalid_token(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_wrong_signature(self) -> None:
        token = _encode(_claims(), secret="another-secret-key-entirely")

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(_encode(_claims(type="refresh")))

    @pytest.mark.parametrize("missing", ["sub", "role"])
    def test_missing_claims(self, missing: str) -> None:
        claims = _claims()
        del claims[missing]

        with pytest.raises(JWTError, match="missing subject or role"):
            decode_access_token(_encode(claims))
