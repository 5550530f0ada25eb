from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.apps.api.deps import (
    ensure_account_scope,
    ensure_can_manage,
    get_current_actor,
    get_db,
    hides_superadmin_rows,
    manages_all_accounts,
    require_account_admin,
    require_admin_write,
    require_write_access,
)
from tenantkey.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantkey.apps.api.response import SuccessEnvelope, listing_response, success_response
from tenantkey.apps.api.schemas import AccountListResponse, AccountResponse
from tenantkey.core.errors import ForbiddenError
from tenantkey.domain.permissions import AccountPermission, is_super_admin, parse_permission
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.accounts import (
    create_account,
    disable_account,
    enable_account,
    export_account,
    get_account,
    query_accounts,
    update_account,
)


router = APIRouter(prefix="/accounts", tags=["accounts"], responses=DEFAULT_ERROR_RESPONSES)


class AccountCreateRequest(BaseModel):
    name: str | None = None
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    account_permission: str | None = None


class AccountUpdateRequest(BaseModel):
    name: str | None = None
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    account_permission: str | None = None


def _guard_permission_grant(actor: Actor, value: str | None) -> None:
    # Administrators may reassign roles, but only a superadmin can mint another superadmin.
    if value is None:
        return
    if not manages_all_accounts(actor):
        raise ForbiddenError("Only administrators may change account_permission")
    permission = parse_permission(AccountPermission, value, field="account_permission")
    if permission is AccountPermission.SUPERADMIN and not is_super_admin(actor.account):
        raise ForbiddenError("Only a superadmin may grant SUPERADMIN")


@router.get("", response_model=SuccessEnvelope[AccountListResponse])
async def list_accounts(
    request: Request,
    actor: Actor = Depends(require_account_admin),
    db: AsyncSession = Depends(get_db),
) -> dict:
    listing = await query_accounts(db, dict(request.query_params), hide_superadmin=hides_superadmin_rows(actor))
    results = [export_account(row) for row in listing["results"]]
    return listing_response(request=request, listing=listing, results=results)


@router.post("", status_code=201, response_model=SuccessEnvelope[AccountResponse])
async def create(
    request: Request,
    payload: AccountCreateRequest,
    actor: Actor = Depends(require_admin_write),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _guard_permission_grant(actor, payload.account_permission)
    account = await create_account(db, payload.model_dump(exclude_none=True), actor)
    return success_response(request=request, data=export_account(account))


@router.get("/{account_id}", response_model=SuccessEnvelope[AccountResponse])
async def get(
    request: Request,
    account_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    ensure_account_scope(actor, account_id)
    account = await get_account(db, account_id)
    ensure_can_manage(actor, account)
    return success_response(request=request, data=export_account(account))


@router.patch("/{account_id}", response_model=SuccessEnvelope[AccountResponse])
async def update(
    request: Request,
    account_id: str,
    payload: AccountUpdateRequest,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    ensure_account_scope(actor, account_id)
    account = await get_account(db, account_id)
    ensure_can_manage(actor, account)
    _guard_permission_grant(actor, payload.account_permission)
    account = await update_account(db, account, payload.model_dump(exclude_none=True), actor)
    return success_response(request=request, data=export_account(account))


@router.post("/{account_id}/enable", response_model=SuccessEnvelope[AccountResponse])
async def enable(
    request: Request,
    account_id: str,
    actor: Actor = Depends(require_admin_write),
    db: AsyncSession = Depends(get_db),
) -> dict:
    ensure_can_manage(actor, await get_account(db, account_id))
    account = await enable_account(db, account_id, actor)
    return success_response(request=request, data=export_account(account))


@router.post("/{account_id}/disable", response_model=SuccessEnvelope[AccountResponse])
async def disable(
    request: Request,
    account_id: str,
    actor: Actor = Depends(require_admin_write),
    db: AsyncSession = Depends(get_db),
) -> dict:
    ensure_can_manage(actor, await get_account(db, account_id))
    account = await disable_account(db, account_id, actor)
    return success_response(request=request, data=export_account(account))
