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
    require_write_access,
    scoped_account_id,
)
from tenantkey.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantkey.apps.api.response import SuccessEnvelope, listing_response, success_response
from tenantkey.apps.api.schemas import UserListResponse, UserResponse
from tenantkey.domain.models import User
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.accounts import get_account
from tenantkey.services.credentials.users import (
    create_user,
    disable_user,
    enable_user,
    export_user,
    get_user,
    query_users,
    update_user,
    validation_token,
)


router = APIRouter(prefix="/users", tags=["users"], responses=DEFAULT_ERROR_RESPONSES)


class UserCreateRequest(BaseModel):
    public_address: str
    account_id: str | None = None
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    user_permission: str | None = None


class UserUpdateRequest(BaseModel):
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    user_permission: str | None = None


class ValidationTokenResponse(BaseModel):
    user_id: str
    validation_token: str


async def _scoped_user(db: AsyncSession, actor: Actor, user_id: str) -> User:
    user = await get_user(db, user_id)
    ensure_account_scope(actor, user.account_id)
    ensure_can_manage(actor, await get_account(db, user.account_id))
    return user


@router.get("", response_model=SuccessEnvelope[UserListResponse])
async def list_users(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    query = dict(request.query_params)
    scope = scoped_account_id(actor)
    if scope is not None:
        query["account_id"] = scope
    listing = await query_users(db, query, hide_superadmin=hides_superadmin_rows(actor))
    results = [export_user(row) for row in listing["results"]]
    return listing_response(request=request, listing=listing, results=results)


@router.post("", status_code=201, response_model=SuccessEnvelope[UserResponse])
async def create(
    request: Request,
    payload: UserCreateRequest,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    account_id = payload.account_id or actor.account.id
    ensure_account_scope(actor, account_id)
    account = await get_account(db, account_id)
    ensure_can_manage(actor, account)
    user = await create_user(db, payload.model_dump(exclude_none=True, exclude={"account_id"}), account, actor)
    return success_response(request=request, data=export_user(user))


@router.get("/{user_id}", response_model=SuccessEnvelope[UserResponse])
async def get(
    request: Request,
    user_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> dict:
    user = await _scoped_user(db, actor, user_id)
    return success_response(request=request, data=export_user(user))


@router.patch("/{user_id}", response_model=SuccessEnvelope[UserResponse])
async def update(
    request: Request,
    user_id: str,
    payload: UserUpdateRequest,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    user = await _scoped_user(db, actor, user_id)
    user = await update_user(db, user, payload.model_dump(exclude_none=True), actor)
    return success_response(request=request, data=export_user(user))


@router.post("/{user_id}/enable", response_model=SuccessEnvelope[UserResponse])
async def enable(
    request: Request,
    user_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await _scoped_user(db, actor, user_id)
    user = await enable_user(db, user_id, actor)
    return success_response(request=request, data=export_user(user))


@router.post("/{user_id}/disable", response_model=SuccessEnvelope[UserResponse])
async def disable(
    request: Request,
    user_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await _scoped_user(db, actor, user_id)
    user = await disable_user(db, user_id, actor)
    return success_response(request=request, data=export_user(user))


@router.post("/{user_id}/validation-token", response_model=SuccessEnvelope[ValidationTokenResponse])
async def issue_validation_token(
    request: Request,
    user_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    # The user stays disabled until the token is redeemed through an enable call.
    user = await _scoped_user(db, actor, user_id)
    token = await validation_token(db, user, actor)
    return success_response(request=request, data=ValidationTokenResponse(user_id=user.id, validation_token=token))
