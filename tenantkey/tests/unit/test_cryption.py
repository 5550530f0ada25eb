from __future__ import annotations

import pytest

from tenantkey.core.errors import DecryptionError, ValidationError
from tenantkey.services.crypto.cryption import (
    Algorithm,
    KdfParams,
    decrypt,
    derive_key,
    encrypt,
    generate_random_key,
    hash_value,
    resolve_algorithm,
    validate_hash,
)


FAST_KDF = KdfParams(n=2**10, r=8, p=1)


def test_round_trip_under_same_secret() -> None:
    secret = generate_random_key()
    payload = encrypt("client-secret-value", secret, kdf=FAST_KDF)
    assert decrypt(payload, secret, kdf=FAST_KDF) == "client-secret-value"


def test_payload_format_is_hex_iv_and_ciphertext() -> None:
    payload = encrypt("abc", "secret", kdf=FAST_KDF)
    iv_hex, cipher_hex = payload.split(":")
    assert len(bytes.fromhex(iv_hex)) == 16
    assert len(bytes.fromhex(cipher_hex)) % 16 == 0


def test_fresh_iv_per_encryption() -> None:
    first = encrypt("same", "secret", kdf=FAST_KDF)
    second = encrypt("same", "secret", kdf=FAST_KDF)
    assert first != second
    assert decrypt(first, "secret", kdf=FAST_KDF) == decrypt(second, "secret", kdf=FAST_KDF)


def test_wrong_secret_fails_loudly() -> None:
    payload = encrypt(generate_random_key(), generate_random_key(), kdf=FAST_KDF)
    with pytest.raises(DecryptionError):
        decrypt(payload, generate_random_key(), kdf=FAST_KDF)


def test_gcm_round_trip_and_tamper_detection() -> None:
    payload = encrypt("sealed", "secret", algorithm="aes-256-gcm", kdf=FAST_KDF)
    assert decrypt(payload, "secret", algorithm=Algorithm.AES256GCM, kdf=FAST_KDF) == "sealed"
    iv_hex, cipher_hex = payload.split(":")
    flipped = format(int(cipher_hex[0], 16) ^ 1, "x") + cipher_hex[1:]
    with pytest.raises(DecryptionError):
        decrypt(f"{iv_hex}:{flipped}", "secret", algorithm=Algorithm.AES256GCM, kdf=FAST_KDF)


@pytest.mark.parametrize("payload", ["no-separator", "zz:zz", "00:00", "00112233445566778899aabbccddeeff:abcd"])
def test_malformed_payload_rejected(payload: str) -> None:
    with pytest.raises(DecryptionError):
        decrypt(payload, "secret", kdf=FAST_KDF)


def test_decryption_error_is_a_validation_error() -> None:
    with pytest.raises(ValidationError) as excinfo:
        decrypt("bad", "secret", kdf=FAST_KDF)
    assert excinfo.value.status_code == 406


def test_missing_inputs_rejected() -> None:
    with pytest.raises(ValidationError, match="No data found"):
        encrypt("", "secret", kdf=FAST_KDF)
    with pytest.raises(ValidationError, match="secret required"):
        encrypt("data", "", kdf=FAST_KDF)


def test_algorithm_resolution() -> None:
    assert resolve_algorithm(None) is Algorithm.AES256CBC
    assert resolve_algorithm("AES128") is Algorithm.AES128CBC
    assert resolve_algorithm("aes-192-cbc").key_length == 24
    with pytest.raises(ValidationError):
        resolve_algorithm("des")


def test_derive_key_is_deterministic_per_salt() -> None:
    key = derive_key("secret", "salt", 32, FAST_KDF)
    assert key == derive_key("secret", "salt", 32, FAST_KDF)
    assert key != derive_key("secret", "pepper", 32, FAST_KDF)
    assert len(derive_key("secret", None, 16, FAST_KDF)) == 16


def test_explicit_salt_must_match_on_decrypt() -> None:
    payload = encrypt("value", "secret", salt="tenant-a", kdf=FAST_KDF)
    assert decrypt(payload, "secret", salt="tenant-a", kdf=FAST_KDF) == "value"
    with pytest.raises(DecryptionError):
        decrypt(payload, "secret", salt="tenant-b", kdf=FAST_KDF)


def test_hash_value_validates_only_original() -> None:
    digest = hash_value("hunter2")
    assert digest != hash_value("hunter2")
    assert validate_hash("hunter2", digest)
    assert not validate_hash("hunter3", digest)
    assert not validate_hash("hunter2", "not-a-hash")
