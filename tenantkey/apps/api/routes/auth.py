from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.apps.api.deps import get_current_actor, get_db
from tenantkey.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantkey.apps.api.response import SuccessEnvelope, success_response
from tenantkey.apps.api.schemas import TokenResponse
from tenantkey.domain.models import Account, Client, User
from tenantkey.domain.permissions import AccessPermission, AccountPermission, UserPermission, permission_name
from tenantkey.services.audit import Actor
from tenantkey.services.auth.grants import (
    client_credentials_grant,
    refresh_grant,
    user_challenge,
    user_signature_grant,
)


router = APIRouter(prefix="/auth", tags=["auth"], responses=DEFAULT_ERROR_RESPONSES)


class ClientCredentialsRequest(BaseModel):
    client_id: str
    client_secret: str


class SignatureRequest(BaseModel):
    public_address: str
    signature: str
    # Optional origin bound into the access token and checked on every request.
    origin: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str


class NonceResponse(BaseModel):
    public_address: str
    nonce: int


class WhoAmIResponse(BaseModel):
    actor_type: str
    account_id: str
    account_permission: str | None
    client_id: str | None = None
    access_permission: str | None = None
    user_id: str | None = None
    user_permission: str | None = None


@router.post("/token", response_model=SuccessEnvelope[TokenResponse])
async def client_token(
    request: Request,
    payload: ClientCredentialsRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    envelope = await client_credentials_grant(db, client_id=payload.client_id, client_secret=payload.client_secret)
    return success_response(request=request, data=envelope)


@router.get("/nonce/{public_address}", response_model=SuccessEnvelope[NonceResponse])
async def nonce(request: Request, public_address: str, db: AsyncSession = Depends(get_db)) -> dict:
    challenge = await user_challenge(db, public_address=public_address)
    return success_response(request=request, data=challenge)


@router.post("/signature", response_model=SuccessEnvelope[TokenResponse])
async def signature_token(
    request: Request,
    payload: SignatureRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    extra_claims = {"origin": payload.origin} if payload.origin else None
    envelope = await user_signature_grant(
        db,
        public_address=payload.public_address,
        signature=payload.signature,
        extra_claims=extra_claims,
    )
    return success_response(request=request, data=envelope)


@router.post("/refresh", response_model=SuccessEnvelope[TokenResponse])
async def refresh(request: Request, payload: RefreshRequest, db: AsyncSession = Depends(get_db)) -> dict:
    envelope = await refresh_grant(db, refresh_token=payload.refresh_token)
    return success_response(request=request, data=envelope)


def _whoami(actor: Actor) -> WhoAmIResponse:
    account: Account = actor.account
    client: Client | None = actor.client
    user: User | None = actor.user
    return WhoAmIResponse(
        actor_type=actor.actor_type,
        account_id=account.id,
        account_permission=permission_name(AccountPermission, account.account_permission),
        client_id=client.id if client else None,
        access_permission=permission_name(AccessPermission, client.access_permission) if client else None,
        user_id=user.id if user else None,
        user_permission=permission_name(UserPermission, user.user_permission) if user else None,
    )


@router.get("/me", response_model=SuccessEnvelope[WhoAmIResponse])
async def me(request: Request, actor: Actor = Depends(get_current_actor)) -> dict:
    return success_response(request=request, data=_whoami(actor))
