from __future__ import annotations

import asyncio
import hmac

from tenantkey.core.config import Settings, get_settings
from tenantkey.core.errors import CryptoError
from tenantkey.services.crypto.cryption import KdfParams, decrypt, encrypt


def master_secret(settings: Settings | None = None) -> str:
    # Fail closed: without a configured master secret no root key or token can be trusted.
    resolved = settings or get_settings()
    secret = (resolved.secret or "").strip()
    if not secret:
        raise CryptoError("SECRET is not configured")
    return secret


def kdf_params(settings: Settings | None = None) -> KdfParams:
    resolved = settings or get_settings()
    return KdfParams(n=resolved.scrypt_n, r=resolved.scrypt_r, p=resolved.scrypt_p)


async def encrypt_with(plaintext: str, secret: str, *, settings: Settings | None = None) -> str:
    # scrypt is CPU-bound; keep it off the event loop.
    return await asyncio.to_thread(encrypt, plaintext, secret, kdf=kdf_params(settings))


async def decrypt_with(payload: str, secret: str, *, settings: Settings | None = None) -> str:
    return await asyncio.to_thread(decrypt, payload, secret, kdf=kdf_params(settings))


def constant_time_equals(candidate: str | None, expected: str | None) -> bool:
    if candidate is None or expected is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
