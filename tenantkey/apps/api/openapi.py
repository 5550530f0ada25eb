from __future__ import annotations

from typing import Any

from tenantkey.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str) -> dict[str, Any]:
    return {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }


def _response(description: str, code: str, message: str) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: _response("Unauthorized", "AUTH_UNAUTHORIZED", "Missing/invalid Authorization token."),
    403: _response("Forbidden", "AUTH_FORBIDDEN", "Permission denied. Credentials do not have access rights to this API."),
    404: _response("Not found", "NOT_FOUND", "client not found"),
    406: _response("Not acceptable", "VALIDATION_ERROR", "Invalid access_permission"),
    409: _response("Conflict", "CONFLICT", "users violates a uniqueness constraint"),
    500: _response("Internal error", "INTERNAL_ERROR", "Internal server error"),
}
