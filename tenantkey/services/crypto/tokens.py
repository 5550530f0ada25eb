from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from tenantkey.core.config import Settings, get_settings
from tenantkey.core.errors import AuthorizationError
from tenantkey.services.crypto.utils import master_secret


TOKEN_TYPE = "Bearer"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sign_claims(
    claims: dict[str, Any],
    *,
    expires_in: int | None = None,
    settings: Settings | None = None,
) -> str:
    # HMAC-sign claims with the master secret; refresh assertions omit exp and die only by rotation.
    resolved = settings or get_settings()
    now = _utc_now()
    payload = {**claims, "iat": now}
    if expires_in is not None:
        payload["exp"] = now + timedelta(seconds=expires_in)
    return jwt.encode(payload, master_secret(resolved), algorithm=resolved.jwt_algorithm)


def decode_token(token: str, *, settings: Settings | None = None) -> dict[str, Any]:
    resolved = settings or get_settings()
    if not token or not isinstance(token, str):
        raise AuthorizationError("Missing/invalid Authorization token.")
    try:
        return jwt.decode(token, master_secret(resolved), algorithms=[resolved.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise AuthorizationError("Token is expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthorizationError("Invalid token") from exc


def sign_access_token(claims: dict[str, Any], *, settings: Settings | None = None) -> str:
    resolved = settings or get_settings()
    return sign_claims(claims, expires_in=resolved.access_token_ttl_s, settings=resolved)


def sign_refresh_token(claims: dict[str, Any], *, settings: Settings | None = None) -> str:
    return sign_claims(claims, expires_in=None, settings=settings)


def sign_validation_token(claims: dict[str, Any], *, settings: Settings | None = None) -> str:
    resolved = settings or get_settings()
    return sign_claims(claims, expires_in=resolved.validation_token_ttl_s, settings=resolved)


def token_envelope(access_token: str, refresh_token: str, *, settings: Settings | None = None) -> dict[str, Any]:
    """Shape the session grant returned to both client and user principals."""
    resolved = settings or get_settings()
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": resolved.access_token_ttl_s,
        "token_type": TOKEN_TYPE,
        "api_server": f"{resolved.api_server.rstrip('/')}/{resolved.api_version}",
        "auth_server": f"{resolved.auth_server.rstrip('/')}/{resolved.api_version}",
    }
