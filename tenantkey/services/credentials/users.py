"""User credential and signature manager.

Users authenticate by signing ``"I am signing my one-time nonce: {nonce}"``
with the private key behind their public address. The nonce must be replaced
after every successful verification so a captured signature cannot be
replayed.

User refresh keys are stored in plaintext by default, unlike client refresh
keys. ``Settings.encrypt_user_refresh_keys`` stores them under the account
root key instead; validation accepts whichever form the row holds.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import Settings, get_settings
from tenantkey.core.errors import DecryptionError, NotFoundError, ValidationError
from tenantkey.domain.models import Account, Client, User
from tenantkey.domain.permissions import UserPermission
from tenantkey.persistence.repos.principals import get_by_field, get_by_id, save
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
from tenantkey.services.crypto.signatures import generate_nonce, nonce_message, verify_signature
from tenantkey.services.crypto.tokens import (
    sign_access_token,
    sign_refresh_token,
    sign_validation_token,
    token_envelope,
)
from tenantkey.services.crypto.utils import constant_time_equals, decrypt_with, encrypt_with


logger = logging.getLogger(__name__)

USER_PROFILE = EntityProfile(
    kind="user",
    model=User,
    permission_field="user_permission",
    registry=UserPermission,
    updatable_fields=("external_id", "extensors"),
    filter_fields=frozenset({"enabled", "external_id", "account_id", "public_address", "user_permission"}),
    redacted_fields=frozenset({"nonce", "refresh_key"}),
)

# Encrypted refresh keys are "iv:ciphertext"; generated plaintext keys are bare hex.
_ENCRYPTED_MARKER = ":"


def normalize_address(address: str) -> str:
    return address.strip().lower()


async def create_user(
    session: AsyncSession,
    attrs: Mapping[str, Any],
    account: Account | None,
    actor: Actor | None = None,
) -> User:
    address = attrs.get("public_address")
    if not address or not isinstance(address, str) or account is None:
        raise ValidationError("Minimum requirements of public_address must be provided to create new user.")
    user = User(
        account_id=account.id,
        public_address=normalize_address(address),
        user_permission=int(UserPermission.USER),
        nonce=generate_nonce(),
        enabled=True,
    )
    user = await update_user(session, user, attrs, actor)
    logger.info("user_created id=%s account=%s", user.id, account.id)
    return user


async def update_user(
    session: AsyncSession,
    user: User,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
) -> User:
    return await update_entity(session, USER_PROFILE, user, attrs, actor)


def validate_signature(user: User, signature: str | bytes | None) -> bool:
    """True when ``signature`` over the current nonce recovers to the user's address."""
    if not signature:
        return False
    return verify_signature(nonce_message(user.nonce), signature, user.public_address)


async def generate_new_nonce(session: AsyncSession, user: User) -> User:
    previous = user.nonce
    nonce = generate_nonce()
    while nonce == previous:
        nonce = generate_nonce()
    user.nonce = nonce
    return await save(session, user)


async def _owning_account(session: AsyncSession, user: User) -> Account:
    account = await get_by_id(session, Account, user.account_id)
    if account is None:
        raise NotFoundError("account not found")
    return account


async def refresh_token(
    session: AsyncSession,
    user: User,
    client: Client | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Rotate the user's refresh key and return a signed refresh assertion for it."""
    resolved = settings or get_settings()
    refresh_key = generate_random_key()
    if resolved.encrypt_user_refresh_keys:
        key = await decrypted_key(await _owning_account(session, user), settings=resolved)
        user.refresh_key = await encrypt_with(refresh_key, key, settings=resolved)
    else:
        user.refresh_key = refresh_key
    await save(session, user)
    claims: dict[str, Any] = {"refresh_key": refresh_key, "user": user.id}
    if client is not None:
        claims["client"] = client.id
    return sign_refresh_token(claims, settings=resolved)


async def validate_refresh_key(
    session: AsyncSession,
    user: User,
    candidate: str | None,
    *,
    settings: Settings | None = None,
) -> bool:
    stored = user.refresh_key
    if not stored or not candidate:
        return False
    if _ENCRYPTED_MARKER in stored:
        key = await decrypted_key(await _owning_account(session, user), settings=settings)
        try:
            stored = await decrypt_with(stored, key, settings=settings)
        except DecryptionError:
            return False
    return constant_time_equals(candidate, stored)


async def issue_token(
    session: AsyncSession,
    user: User,
    account: Account,
    extra_claims: Mapping[str, Any] | None = None,
    *,
    client: Client | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    resolved = settings or get_settings()
    # Extra claims may add context but never rebind the principal identifiers.
    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update({"account": account.id, "user": user.id})
    access_token = sign_access_token(claims, settings=resolved)
    refresh = await refresh_token(session, user, client, settings=resolved)
    logger.info("user_token_issued user=%s account=%s", user.id, account.id)
    return token_envelope(access_token, refresh, settings=resolved)


async def validation_token(
    session: AsyncSession,
    user: User,
    actor: Actor | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Issue a 7-day verification assertion and park the user as pending (disabled)."""
    token = sign_validation_token({"user": user.id}, settings=settings)
    await update_user(session, user, {"enabled": False}, actor)
    return token


async def encrypt_for_user(
    session: AsyncSession,
    user: User,
    data: str,
    *,
    settings: Settings | None = None,
) -> str:
    key = await decrypted_key(await _owning_account(session, user), settings=settings)
    return await encrypt_with(data, key, settings=settings)


async def decrypt_for_user(
    session: AsyncSession,
    user: User,
    data: str,
    *,
    settings: Settings | None = None,
) -> str:
    key = await decrypted_key(await _owning_account(session, user), settings=settings)
    return await decrypt_with(data, key, settings=settings)


def export_user(user: User) -> dict[str, Any]:
    return export_entity(USER_PROFILE, user)


async def get_user(session: AsyncSession, user_id: str | None) -> User:
    return await get_entity(session, USER_PROFILE, user_id)


async def get_by_public_address(session: AsyncSession, address: str | None) -> User | None:
    if not address or not isinstance(address, str):
        raise ValidationError("public_address is required")
    return await get_by_field(session, User, "public_address", normalize_address(address))


async def get_by_account(session: AsyncSession, account_id: str) -> User | None:
    return await get_by_field(session, User, "account_id", account_id)


async def enable_user(session: AsyncSession, user_id: str | None, actor: Actor | None = None) -> User:
    return await set_enabled_by_id(session, USER_PROFILE, user_id, True, actor)


async def disable_user(session: AsyncSession, user_id: str | None, actor: Actor | None = None) -> User:
    return await set_enabled_by_id(session, USER_PROFILE, user_id, False, actor)


async def query_users(
    session: AsyncSession, query: Mapping[str, Any] | None = None, *, hide_superadmin: bool = False
) -> dict[str, Any]:
    query = dict(query or {})
    if isinstance(query.get("public_address"), str):
        query["public_address"] = normalize_address(query["public_address"])
    return await query_entities(session, USER_PROFILE, query, hide_superadmin=hide_superadmin)
