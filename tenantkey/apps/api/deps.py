from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import get_settings
from tenantkey.core.errors import ForbiddenError
from tenantkey.domain.models import Account
from tenantkey.domain.permissions import is_admin, is_read_only, is_super_admin, is_user_admin
from tenantkey.persistence.db import get_session
from tenantkey.services.audit import Actor
from tenantkey.services.auth.authorize import parse_bearer_token, resolve_actor


logger = logging.getLogger(__name__)

_PERMISSION_DENIED = "Permission denied. Credentials do not have access rights to this API."


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


async def get_current_actor(request: Request, db: AsyncSession = Depends(get_db)) -> Actor:
    settings = get_settings()
    token = parse_bearer_token(request.headers.get(settings.auth_header))
    actor = await resolve_actor(db, token, origin=request.headers.get("origin"), settings=settings)
    request.state.actor = actor
    return actor


def manages_all_accounts(actor: Actor) -> bool:
    return is_super_admin(actor.account) or is_admin(actor.account)


def scoped_account_id(actor: Actor) -> str | None:
    # Domain accounts only ever see their own rows; administrators see every account.
    if manages_all_accounts(actor):
        return None
    return actor.account.id if actor.account is not None else None


def ensure_account_scope(actor: Actor, account_id: str | None) -> None:
    scope = scoped_account_id(actor)
    if scope is not None and account_id != scope:
        logger.info("account_scope_denied actor=%s account=%s", actor.actor_id, account_id)
        raise ForbiddenError(_PERMISSION_DENIED)


async def require_account_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not manages_all_accounts(actor):
        raise ForbiddenError(_PERMISSION_DENIED)
    return actor


async def require_write_access(actor: Actor = Depends(get_current_actor)) -> Actor:
    # Read-only clients and non-administrator users may read but never mutate.
    if actor.client is not None and is_read_only(actor.client):
        raise ForbiddenError(_PERMISSION_DENIED)
    if actor.user is not None and not is_user_admin(actor.user):
        raise ForbiddenError(_PERMISSION_DENIED)
    return actor


async def require_admin_write(actor: Actor = Depends(require_write_access)) -> Actor:
    if not manages_all_accounts(actor):
        raise ForbiddenError(_PERMISSION_DENIED)
    return actor


def hides_superadmin_rows(actor: Actor) -> bool:
    return not is_super_admin(actor.account)


def ensure_can_manage(actor: Actor, account: Account) -> None:
    # Scope first, then shield SUPERADMIN accounts and their principals from lesser administrators.
    ensure_account_scope(actor, account.id)
    if is_super_admin(account) and not is_super_admin(actor.account):
        logger.info("superadmin_target_denied actor=%s account=%s", actor.actor_id, account.id)
        raise ForbiddenError(_PERMISSION_DENIED)
