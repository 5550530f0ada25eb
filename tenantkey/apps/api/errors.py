from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantkey.apps.api.response import error_response
from tenantkey.core.errors import AuthorizationError, TenantKeyError


logger = logging.getLogger(__name__)

# Fallback codes for framework-raised errors (unknown routes, wrong methods).
_STATUS_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    406: "VALIDATION_ERROR",
    409: "CONFLICT",
}


def _envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=status_code, headers=headers)


async def tenantkey_error_handler(request: Request, exc: TenantKeyError) -> JSONResponse:
    # Client errors echo their message; server-side failures never leak internals.
    if exc.status_code >= 500:
        logger.error("request_failed path=%s code=%s", request.url.path, exc.code, exc_info=exc)
        return _envelope(request, exc.status_code, exc.code, "Internal server error")
    headers = None
    if isinstance(exc, AuthorizationError) and exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return _envelope(request, exc.status_code, exc.code, exc.message, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "UNKNOWN_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _envelope(request, exc.status_code, code, message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed request bodies stay 422; domain validation failures use 406.
    return _envelope(
        request,
        422,
        "REQUEST_VALIDATION_ERROR",
        "Validation error",
        details={"errors": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("request_unhandled_error path=%s", request.url.path, exc_info=exc)
    return _envelope(request, 500, "INTERNAL_ERROR", "Internal server error")
