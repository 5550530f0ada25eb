from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import Settings
from tenantkey.core.errors import AuthorizationError, ForbiddenError
from tenantkey.domain.models import Account, Client, CredentialEntityMixin, User
from tenantkey.persistence.repos.principals import get_by_id
from tenantkey.services.audit import Actor
from tenantkey.services.crypto.tokens import decode_token


logger = logging.getLogger(__name__)


def parse_bearer_token(header_value: str | None) -> str:
    # Accept "Bearer <token>" or a bare token, as websocket query strings carry it bare.
    if not header_value or not header_value.strip():
        raise AuthorizationError("Missing/invalid Authorization token.")
    parts = header_value.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1:
        return parts[0]
    raise AuthorizationError("Missing/invalid Authorization token.")


async def _load_enabled(
    session: AsyncSession,
    model: type[CredentialEntityMixin],
    row_id: Any,
) -> Any:
    row = await get_by_id(session, model, str(row_id))
    # Missing and disabled principals are indistinguishable to the caller.
    if row is None or not row.enabled:
        logger.info("authorize_rejected kind=%s id=%s", model.__tablename__, row_id)
        raise ForbiddenError("Invalid request")
    return row


async def resolve_actor(
    session: AsyncSession,
    token: str,
    *,
    origin: str | None = None,
    settings: Settings | None = None,
) -> Actor:
    """Verify an access token and load the enabled principals it names."""
    claims = decode_token(token, settings=settings)
    if "refresh_key" in claims:
        raise AuthorizationError("Refresh tokens cannot authorize requests")
    if not claims.get("account"):
        raise AuthorizationError("Token does not identify an account")
    if claims.get("origin") and claims["origin"] != origin:
        raise ForbiddenError("Invalid request")

    account = await _load_enabled(session, Account, claims["account"])
    client = None
    user = None
    if claims.get("client"):
        client = await _load_enabled(session, Client, claims["client"])
        if client.account_id != account.id:
            raise ForbiddenError("Invalid request")
    if claims.get("user"):
        user = await _load_enabled(session, User, claims["user"])
        if user.account_id != account.id:
            raise ForbiddenError("Invalid request")
    return Actor(account=account, client=client, user=user)
