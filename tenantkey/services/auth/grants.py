"""Credential exchanges that end in a token envelope.

Each grant verifies one kind of proof (client secret, nonce signature or
refresh assertion), checks that every principal involved is enabled and then
issues a fresh access/refresh pair. Verification failures raise
``AuthorizationError``; disabled principals raise ``ForbiddenError``.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import Settings
from tenantkey.core.errors import AuthorizationError, ForbiddenError, NotFoundError
from tenantkey.domain.models import Account, Client, User
from tenantkey.persistence.repos.principals import get_by_id
from tenantkey.services.credentials import clients as client_credentials
from tenantkey.services.credentials import users as user_credentials
from tenantkey.services.crypto.tokens import decode_token


logger = logging.getLogger(__name__)


async def _enabled_account(session: AsyncSession, account_id: str) -> Account:
    account = await get_by_id(session, Account, account_id)
    if account is None or not account.enabled:
        raise ForbiddenError("Account is disabled")
    return account


async def client_credentials_grant(
    session: AsyncSession,
    *,
    client_id: str,
    client_secret: str,
    settings: Settings | None = None,
) -> dict[str, Any]:
    client = await get_by_id(session, Client, client_id) if client_id else None
    if client is None:
        raise AuthorizationError("Invalid client credentials")
    if not client.enabled:
        raise ForbiddenError("Client is disabled")
    account = await _enabled_account(session, client.account_id)
    if not await client_credentials.validate_secret(client, client_secret, account, settings=settings):
        logger.info("client_grant_rejected client=%s", client.id)
        raise AuthorizationError("Invalid client credentials")
    return await client_credentials.issue_token(session, client, account, settings=settings)


async def user_challenge(session: AsyncSession, *, public_address: str) -> dict[str, Any]:
    """Return the nonce a user must sign next."""
    user = await user_credentials.get_by_public_address(session, public_address)
    if user is None:
        raise NotFoundError("user not found")
    return {"public_address": user.public_address, "nonce": user.nonce}


async def user_signature_grant(
    session: AsyncSession,
    *,
    public_address: str,
    signature: str,
    extra_claims: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    user = await user_credentials.get_by_public_address(session, public_address)
    if user is None:
        raise AuthorizationError("Signature verification failed")
    if not user.enabled:
        raise ForbiddenError("User is disabled")
    account = await _enabled_account(session, user.account_id)
    if not user_credentials.validate_signature(user, signature):
        logger.info("user_signature_rejected user=%s", user.id)
        raise AuthorizationError("Signature verification failed")
    # Burn the nonce before issuing anything so the signature cannot be replayed.
    await user_credentials.generate_new_nonce(session, user)
    return await user_credentials.issue_token(session, user, account, extra_claims, settings=settings)


async def refresh_grant(
    session: AsyncSession,
    *,
    refresh_token: str,
    settings: Settings | None = None,
) -> dict[str, Any]:
    claims = decode_token(refresh_token, settings=settings)
    refresh_key = claims.get("refresh_key")
    if not refresh_key:
        raise AuthorizationError("Not a refresh token")

    if claims.get("user"):
        user = await get_by_id(session, User, str(claims["user"]))
        if user is None or not user.enabled:
            raise ForbiddenError("User is disabled")
        if not await user_credentials.validate_refresh_key(session, user, refresh_key, settings=settings):
            raise AuthorizationError("Refresh token has been revoked")
        account = await _enabled_account(session, user.account_id)
        client = None
        if claims.get("client"):
            client = await get_by_id(session, Client, str(claims["client"]))
            if client is None or not client.enabled or client.account_id != account.id:
                raise ForbiddenError("Client is disabled")
        return await user_credentials.issue_token(session, user, account, client=client, settings=settings)

    if claims.get("client"):
        client = await get_by_id(session, Client, str(claims["client"]))
        if client is None or not client.enabled:
            raise ForbiddenError("Client is disabled")
        account = await _enabled_account(session, client.account_id)
        if not await client_credentials.validate_refresh_key(client, refresh_key, account, settings=settings):
            raise AuthorizationError("Refresh token has been revoked")
        return await client_credentials.issue_token(session, client, account, settings=settings)

    raise AuthorizationError("Refresh token does not identify a principal")
