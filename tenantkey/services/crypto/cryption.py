"""Symmetric cryption engine.

Reversible secrets are encrypted as ``hex(iv):hex(ciphertext)`` under a key
derived with scrypt from ``(secret, salt)``; every call draws a fresh IV so
repeated encryptions of one value never correlate. One-way credential hashing
uses argon2id with the salt embedded in the digest.

Nothing here reads configuration: secrets and cost parameters are passed in.
"""
from __future__ import annotations

import binascii
import os
import secrets
from dataclasses import dataclass
from enum import Enum

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from tenantkey.core.errors import CryptoError, DecryptionError, ValidationError


RANDOM_KEY_BYTES = 16
CBC_IV_BYTES = 16
GCM_NONCE_BYTES = 12


class Algorithm(str, Enum):
    AES128CBC = "aes-128-cbc"
    AES192CBC = "aes-192-cbc"
    AES256CBC = "aes-256-cbc"
    AES256GCM = "aes-256-gcm"

    @property
    def key_length(self) -> int:
        return {"aes-128-cbc": 16, "aes-192-cbc": 24}.get(self.value, 32)

    @property
    def is_gcm(self) -> bool:
        return self is Algorithm.AES256GCM


# Short names accepted for compatibility with stored configuration values.
_ALIASES = {
    "aes128": Algorithm.AES128CBC,
    "aes192": Algorithm.AES192CBC,
    "aes256": Algorithm.AES256CBC,
}

DEFAULT_ALGORITHM = Algorithm.AES256CBC


@dataclass(frozen=True)
class KdfParams:
    n: int = 2**14
    r: int = 8
    p: int = 1


DEFAULT_KDF = KdfParams()

_password_hasher = PasswordHasher()


def generate_random_key() -> str:
    """Return a cryptographically secure random key rendered as hex."""
    return secrets.token_hex(RANDOM_KEY_BYTES)


def resolve_algorithm(algorithm: Algorithm | str | None) -> Algorithm:
    if algorithm is None:
        return DEFAULT_ALGORITHM
    if isinstance(algorithm, Algorithm):
        return algorithm
    normalized = algorithm.strip().lower()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return Algorithm(normalized)
    except ValueError as exc:
        raise ValidationError(f"Unsupported algorithm: {algorithm}") from exc


def _default_salt(secret: str) -> bytes:
    # Hex secrets (the generated kind) salt with their raw bytes; anything else with its UTF-8 form.
    try:
        return bytes.fromhex(secret)
    except ValueError:
        return secret.encode("utf-8")


def derive_key(secret: str, salt: bytes | str | None, length: int, kdf: KdfParams = DEFAULT_KDF) -> bytes:
    """Normalize a variable-length secret into a cipher key with scrypt."""
    if salt is None:
        salt_bytes = _default_salt(secret)
    elif isinstance(salt, str):
        salt_bytes = salt.encode("utf-8")
    else:
        salt_bytes = salt
    try:
        return Scrypt(salt=salt_bytes, length=length, n=kdf.n, r=kdf.r, p=kdf.p).derive(secret.encode("utf-8"))
    except (ValueError, TypeError, MemoryError) as exc:
        raise CryptoError("Key derivation failed") from exc


def _require(plaintext: str | bytes | None, secret: str | None) -> None:
    if not plaintext:
        raise ValidationError("No data found")
    if not secret:
        raise ValidationError("secret required.")


def encrypt(
    plaintext: str | bytes,
    secret: str,
    salt: bytes | str | None = None,
    algorithm: Algorithm | str | None = None,
    *,
    kdf: KdfParams = DEFAULT_KDF,
) -> str:
    """Encrypt ``plaintext`` under ``secret`` and return ``hex(iv):hex(ciphertext)``."""
    _require(plaintext, secret)
    algo = resolve_algorithm(algorithm)
    data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
    key = derive_key(secret, salt, algo.key_length, kdf)
    if algo.is_gcm:
        iv = os.urandom(GCM_NONCE_BYTES)
        ciphertext = AESGCM(key).encrypt(iv, data, None)
    else:
        iv = os.urandom(CBC_IV_BYTES)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def _split_payload(payload: str, iv_length: int) -> tuple[bytes, bytes]:
    if not isinstance(payload, str) or ":" not in payload:
        raise DecryptionError("Malformed ciphertext")
    iv_hex, cipher_hex = payload.split(":", 1)
    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(cipher_hex)
    except (ValueError, binascii.Error) as exc:
        raise DecryptionError("Malformed ciphertext") from exc
    if len(iv) != iv_length or not ciphertext:
        raise DecryptionError("Malformed ciphertext")
    return iv, ciphertext


def decrypt(
    payload: str,
    secret: str,
    salt: bytes | str | None = None,
    algorithm: Algorithm | str | None = None,
    *,
    kdf: KdfParams = DEFAULT_KDF,
) -> str:
    """Decrypt an ``iv:ciphertext`` payload; wrong secrets raise ``DecryptionError``."""
    _require(payload, secret)
    algo = resolve_algorithm(algorithm)
    iv, ciphertext = _split_payload(payload, GCM_NONCE_BYTES if algo.is_gcm else CBC_IV_BYTES)
    key = derive_key(secret, salt, algo.key_length, kdf)
    if algo.is_gcm:
        try:
            data = AESGCM(key).decrypt(iv, ciphertext, None)
        except InvalidTag as exc:
            raise DecryptionError("Decryption failed") from exc
    else:
        if len(ciphertext) % CBC_IV_BYTES:
            raise DecryptionError("Malformed ciphertext")
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            raise DecryptionError("Decryption failed") from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decryption failed") from exc


def hash_value(value: str) -> str:
    """One-way, salted argon2id digest for credentials that are never recovered."""
    if not value:
        raise ValidationError("No data found")
    return _password_hasher.hash(value)


def validate_hash(value: str, digest: str) -> bool:
    if not value or not digest:
        return False
    try:
        return _password_hasher.verify(digest, value)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
