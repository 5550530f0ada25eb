from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.apps.api.deps import (
    ensure_account_scope,
    ensure_can_manage,
    get_db,
    hides_superadmin_rows,
    require_write_access,
    scoped_account_id,
)
from tenantkey.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantkey.apps.api.response import SuccessEnvelope, listing_response, success_response
from tenantkey.apps.api.schemas import ClientListResponse, ClientResponse
from tenantkey.domain.models import Account, Client
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.accounts import get_account
from tenantkey.services.credentials.clients import (
    create_client,
    disable_client,
    enable_client,
    export_client,
    export_clients,
    get_client,
    query_clients,
    update_client,
)


# Client exports carry plaintext secrets, so even reads require write access.
router = APIRouter(prefix="/clients", tags=["clients"], responses=DEFAULT_ERROR_RESPONSES)


class ClientCreateRequest(BaseModel):
    name: str
    account_id: str | None = None
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    access_permission: str | None = None


class ClientUpdateRequest(BaseModel):
    name: str | None = None
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    access_permission: str | None = None


async def _scoped_client(db: AsyncSession, actor: Actor, client_id: str) -> tuple[Client, Account]:
    client = await get_client(db, client_id)
    ensure_account_scope(actor, client.account_id)
    account = await get_account(db, client.account_id)
    ensure_can_manage(actor, account)
    return client, account


@router.get("", response_model=SuccessEnvelope[ClientListResponse])
async def list_clients(
    request: Request,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    query = dict(request.query_params)
    scope = scoped_account_id(actor)
    if scope is not None:
        query["account_id"] = scope
    listing = await query_clients(db, query, hide_superadmin=hides_superadmin_rows(actor))
    results = await export_clients(db, listing["results"])
    return listing_response(request=request, listing=listing, results=results)


@router.post("", status_code=201, response_model=SuccessEnvelope[ClientResponse])
async def create(
    request: Request,
    payload: ClientCreateRequest,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    account_id = payload.account_id or actor.account.id
    ensure_account_scope(actor, account_id)
    account = await get_account(db, account_id)
    ensure_can_manage(actor, account)
    client = await create_client(db, payload.model_dump(exclude_none=True, exclude={"account_id"}), account, actor)
    return success_response(request=request, data=await export_client(client, account))


@router.get("/{client_id}", response_model=SuccessEnvelope[ClientResponse])
async def get(
    request: Request,
    client_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    client, account = await _scoped_client(db, actor, client_id)
    return success_response(request=request, data=await export_client(client, account))


@router.patch("/{client_id}", response_model=SuccessEnvelope[ClientResponse])
async def update(
    request: Request,
    client_id: str,
    payload: ClientUpdateRequest,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    client, account = await _scoped_client(db, actor, client_id)
    client = await update_client(db, client, payload.model_dump(exclude_none=True), actor)
    return success_response(request=request, data=await export_client(client, account))


@router.post("/{client_id}/enable", response_model=SuccessEnvelope[ClientResponse])
async def enable(
    request: Request,
    client_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _, account = await _scoped_client(db, actor, client_id)
    client = await enable_client(db, client_id, actor)
    return success_response(request=request, data=await export_client(client, account))


@router.post("/{client_id}/disable", response_model=SuccessEnvelope[ClientResponse])
async def disable(
    request: Request,
    client_id: str,
    actor: Actor = Depends(require_write_access),
    db: AsyncSession = Depends(get_db),
) -> dict:
    _, account = await _scoped_client(db, actor, client_id)
    client = await disable_client(db, client_id, actor)
    return success_response(request=request, data=await export_client(client, account))
