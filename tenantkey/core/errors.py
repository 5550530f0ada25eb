from __future__ import annotations


class TenantKeyError(Exception):
    """Base error for tenantkey; carries a transport-agnostic status and code."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(TenantKeyError):
    """Unknown enum value, missing required field or malformed input."""

    status_code = 406
    code = "VALIDATION_ERROR"


class NotFoundError(TenantKeyError):
    """Lookup by id or unique field yielded nothing."""

    status_code = 404
    code = "NOT_FOUND"


class AuthorizationError(TenantKeyError):
    """Token, signature, secret or refresh key did not verify."""

    status_code = 401
    code = "AUTH_UNAUTHORIZED"


class ForbiddenError(AuthorizationError):
    """Principal is disabled or lacks the required permission."""

    status_code = 403
    code = "AUTH_FORBIDDEN"


class CryptoError(TenantKeyError):
    """Key derivation or cipher failure."""

    status_code = 500
    code = "CRYPTO_ERROR"


class DecryptionError(CryptoError, ValidationError):
    """Ciphertext is malformed or was produced under a different secret."""

    status_code = 406
    code = "DECRYPTION_FAILED"


class PersistenceError(TenantKeyError):
    """Storage read or write failure."""

    status_code = 500
    code = "PERSISTENCE_ERROR"


class ConflictError(PersistenceError):
    """Unique constraint violated."""

    status_code = 409
    code = "CONFLICT"


class ConcurrencyError(PersistenceError):
    """Row changed underneath a read-modify-write cycle."""

    status_code = 409
    code = "CONCURRENT_UPDATE"
