from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantkey.apps.api.errors import (
    http_exception_handler,
    tenantkey_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from tenantkey.apps.api.response import API_VERSION
from tenantkey.apps.api.routes.accounts import router as accounts_router
from tenantkey.apps.api.routes.auth import router as auth_router
from tenantkey.apps.api.routes.clients import router as clients_router
from tenantkey.apps.api.routes.health import router as health_router
from tenantkey.apps.api.routes.users import router as users_router
from tenantkey.core.config import get_settings
from tenantkey.core.errors import TenantKeyError
from tenantkey.core.logging import configure_logging


logger = logging.getLogger(__name__)

_ROUTERS = (health_router, auth_router, accounts_router, clients_router, users_router)


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    prefix = f"/{API_VERSION}"
    app = FastAPI(title="tenantkey API", openapi_url=f"{prefix}/openapi.json", docs_url=f"{prefix}/docs")

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Tag every request with an id (caller-supplied when present) and log its outcome.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        started = time.monotonic()
        response = await call_next(request)
        logger.info(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - started) * 1000.0,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    app.add_exception_handler(TenantKeyError, tenantkey_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    for router in _ROUTERS:
        app.include_router(router, prefix=prefix)

    logger.info("app_created name=%s api_version=%s", settings.app_name, API_VERSION)
    return app


app = create_app()
