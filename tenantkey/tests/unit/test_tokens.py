from __future__ import annotations

import jwt
import pytest

from tenantkey.core.config import Settings
from tenantkey.core.errors import AuthorizationError, CryptoError
from tenantkey.services.crypto.tokens import (
    decode_token,
    sign_access_token,
    sign_claims,
    sign_refresh_token,
    sign_validation_token,
    token_envelope,
)


def _settings(**overrides) -> Settings:
    values = {"secret": "unit-test-secret", "api_server": "https://api.example", "auth_server": "https://auth.example"}
    values.update(overrides)
    return Settings(**values)


def test_access_token_expires_after_a_day() -> None:
    settings = _settings()
    claims = decode_token(sign_access_token({"account": "a1", "client": "c1"}, settings=settings), settings=settings)
    assert claims["account"] == "a1"
    assert claims["exp"] - claims["iat"] == 86400


def test_refresh_token_has_no_expiry() -> None:
    settings = _settings()
    claims = decode_token(sign_refresh_token({"refresh_key": "k", "user": "u1"}, settings=settings), settings=settings)
    assert "exp" not in claims
    assert claims["refresh_key"] == "k"


def test_validation_token_expires_after_a_week() -> None:
    settings = _settings()
    claims = decode_token(sign_validation_token({"user": "u1"}, settings=settings), settings=settings)
    assert claims["exp"] - claims["iat"] == 604800


def test_expired_token_rejected() -> None:
    settings = _settings()
    token = sign_claims({"account": "a1"}, expires_in=-60, settings=settings)
    with pytest.raises(AuthorizationError, match="Token is expired."):
        decode_token(token, settings=settings)


def test_token_from_other_secret_rejected() -> None:
    foreign = jwt.encode({"account": "a1"}, "someone-else", algorithm="HS256")
    with pytest.raises(AuthorizationError, match="Invalid token"):
        decode_token(foreign, settings=_settings())


def test_missing_token_rejected() -> None:
    with pytest.raises(AuthorizationError):
        decode_token("", settings=_settings())


def test_signing_without_master_secret_fails_closed() -> None:
    with pytest.raises(CryptoError):
        sign_access_token({"account": "a1"}, settings=_settings(secret=""))


def test_token_envelope_shape() -> None:
    envelope = token_envelope("access", "refresh", settings=_settings())
    assert envelope == {
        "access_token": "access",
        "refresh_token": "refresh",
        "expires_in": 86400,
        "token_type": "Bearer",
        "api_server": "https://api.example/v1",
        "auth_server": "https://auth.example/v1",
    }
