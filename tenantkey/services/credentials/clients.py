"""Client credential manager.

A client's secret and refresh key are both ciphertext under its account's
decrypted root key. Issuing a refresh token replaces the stored refresh key,
which invalidates every refresh token issued before it.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import Settings, get_settings
from tenantkey.core.errors import AuthorizationError, ValidationError
from tenantkey.domain.models import Account, Client
from tenantkey.domain.permissions import AccessPermission
from tenantkey.persistence.repos.principals import get_by_id, list_rows, save
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.accounts import decrypted_key
from tenantkey.services.credentials.base import (
    EntityProfile,
    export_entity,
    get_entity,
    query_entities,
    set_enabled_by_id,
    update_entity,
)
from tenantkey.services.crypto.cryption import generate_random_key
from tenantkey.services.crypto.tokens import sign_access_token, sign_refresh_token, token_envelope
from tenantkey.services.crypto.utils import constant_time_equals, decrypt_with, encrypt_with


logger = logging.getLogger(__name__)

CLIENT_PROFILE = EntityProfile(
    kind="client",
    model=Client,
    permission_field="access_permission",
    registry=AccessPermission,
    updatable_fields=("name", "external_id", "extensors"),
    filter_fields=frozenset({"enabled", "name", "external_id", "account_id", "access_permission"}),
    redacted_fields=frozenset({"refresh_key"}),
)


def _ensure_owner(client: Client, account: Account | None) -> Account:
    # Decrypting under any other account's key can only produce garbage; refuse up front.
    if account is None:
        raise ValidationError("A valid account is required")
    if client.account_id and client.account_id != account.id:
        raise AuthorizationError("Client does not belong to account")
    return account


async def create_client(
    session: AsyncSession,
    attrs: Mapping[str, Any],
    account: Account | None,
    actor: Actor | None = None,
    *,
    settings: Settings | None = None,
) -> Client:
    if account is None:
        raise ValidationError("A valid account is required to create a client")
    if not attrs.get("name"):
        raise ValidationError("Client name is required")
    key = await decrypted_key(account, settings=settings)
    client = Client(
        account_id=account.id,
        secret=await encrypt_with(generate_random_key(), key, settings=settings),
        access_permission=int(AccessPermission.READONLY),
        enabled=True,
    )
    client = await update_client(session, client, attrs, actor)
    logger.info("client_created id=%s account=%s", client.id, account.id)
    return client


async def update_client(
    session: AsyncSession,
    client: Client,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
) -> Client:
    return await update_entity(session, CLIENT_PROFILE, client, attrs, actor)


async def decrypt_secret_with_key(client: Client, key: str, *, settings: Settings | None = None) -> str:
    return await decrypt_with(client.secret, key, settings=settings)


async def decrypt_secret(client: Client, account: Account | None, *, settings: Settings | None = None) -> str:
    owner = _ensure_owner(client, account)
    key = await decrypted_key(owner, settings=settings)
    return await decrypt_secret_with_key(client, key, settings=settings)


async def validate_secret(
    client: Client,
    candidate: str | None,
    account: Account | None,
    *,
    settings: Settings | None = None,
) -> bool:
    secret = await decrypt_secret(client, account, settings=settings)
    return constant_time_equals(candidate, secret)


async def refresh_token(
    session: AsyncSession,
    client: Client,
    account: Account | None,
    *,
    settings: Settings | None = None,
) -> str:
    """Rotate the refresh key and return a signed refresh assertion for it."""
    owner = _ensure_owner(client, account)
    key = await decrypted_key(owner, settings=settings)
    refresh_key = generate_random_key()
    client.refresh_key = await encrypt_with(refresh_key, key, settings=settings)
    await save(session, client)
    return sign_refresh_token(
        {"refresh_key": refresh_key, "account": client.account_id, "client": client.id},
        settings=settings,
    )


async def validate_refresh_key(
    client: Client,
    candidate: str | None,
    account: Account | None,
    *,
    settings: Settings | None = None,
) -> bool:
    if not client.refresh_key or not candidate:
        return False
    owner = _ensure_owner(client, account)
    key = await decrypted_key(owner, settings=settings)
    stored = await decrypt_with(client.refresh_key, key, settings=settings)
    return constant_time_equals(candidate, stored)


async def issue_token(
    session: AsyncSession,
    client: Client,
    account: Account | None,
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    resolved = settings or get_settings()
    owner = _ensure_owner(client, account)
    access_token = sign_access_token({"account": owner.id, "client": client.id}, settings=resolved)
    refresh = await refresh_token(session, client, owner, settings=resolved)
    logger.info("client_token_issued client=%s account=%s", client.id, owner.id)
    return token_envelope(access_token, refresh, settings=resolved)


async def export_client(
    client: Client,
    account: Account | None,
    *,
    key: str | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Export view with the plaintext secret in place of its ciphertext.

    ``key`` is the owning account's already decrypted root key; batch exports
    pass it so the root key is recovered once per account instead of per client.
    """
    owner = _ensure_owner(client, account)
    if key is None:
        key = await decrypted_key(owner, settings=settings)
    data = export_entity(CLIENT_PROFILE, client)
    data["secret"] = await decrypt_secret_with_key(client, key, settings=settings)
    return data


async def get_client(session: AsyncSession, client_id: str | None) -> Client:
    return await get_entity(session, CLIENT_PROFILE, client_id)


async def get_by_name(session: AsyncSession, name: str | None, account: Account | None) -> list[Client]:
    if not name or not isinstance(name, str) or account is None:
        raise AuthorizationError("Requires valid account and name type of string")
    return await list_rows(session, Client, filters={"account_id": account.id, "name": name})


async def list_by_account(
    session: AsyncSession,
    account: Account,
    *,
    settings: Settings | None = None,
) -> list[dict[str, Any]]:
    clients = await list_rows(session, Client, filters={"account_id": account.id})
    if not clients:
        return []
    key = await decrypted_key(account, settings=settings)
    return list(await asyncio.gather(*(export_client(c, account, key=key, settings=settings) for c in clients)))


async def export_clients(
    session: AsyncSession,
    clients: list[Client],
    *,
    settings: Settings | None = None,
) -> list[dict[str, Any]]:
    # Every client decrypts under its own account's key, recovered once per account.
    owners: dict[str, tuple[Account, str]] = {}
    exported: list[dict[str, Any]] = []
    for client in clients:
        if client.account_id not in owners:
            account = _ensure_owner(client, await get_by_id(session, Account, client.account_id))
            owners[client.account_id] = (account, await decrypted_key(account, settings=settings))
        account, key = owners[client.account_id]
        exported.append(await export_client(client, account, key=key, settings=settings))
    return exported


async def list_all_exported(session: AsyncSession, *, settings: Settings | None = None) -> list[dict[str, Any]]:
    return await export_clients(session, await list_rows(session, Client), settings=settings)


async def enable_client(session: AsyncSession, client_id: str | None, actor: Actor | None = None) -> Client:
    return await set_enabled_by_id(session, CLIENT_PROFILE, client_id, True, actor)


async def disable_client(session: AsyncSession, client_id: str | None, actor: Actor | None = None) -> Client:
    return await set_enabled_by_id(session, CLIENT_PROFILE, client_id, False, actor)


async def query_clients(
    session: AsyncSession, query: Mapping[str, Any] | None = None, *, hide_superadmin: bool = False
) -> dict[str, Any]:
    return await query_entities(session, CLIENT_PROFILE, query, hide_superadmin=hide_superadmin)
