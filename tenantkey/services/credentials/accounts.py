"""Account credential root.

Each account owns one random root key, stored encrypted under the process
master secret. Client secrets, client refresh keys and user-protected data are
encrypted under the decrypted root key, so ``decrypted_key`` is the single
point of trust for a tenant's whole hierarchy. Root keys are generated once and
never rotated: replacing one would orphan every descendant secret.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import Settings, get_settings
from tenantkey.core.errors import CryptoError, DecryptionError
from tenantkey.domain.models import Account
from tenantkey.domain.permissions import AccountPermission
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.base import (
    KEY_CASCADE_ROOT,
    EntityProfile,
    export_entity,
    get_entity,
    query_entities,
    set_enabled_by_id,
    update_entity,
)
from tenantkey.services.crypto.cryption import generate_random_key
from tenantkey.services.crypto.utils import decrypt_with, encrypt_with, master_secret


logger = logging.getLogger(__name__)

ACCOUNT_PROFILE = EntityProfile(
    kind="account",
    model=Account,
    permission_field="account_permission",
    registry=AccountPermission,
    updatable_fields=("name", "external_id", "extensors"),
    filter_fields=frozenset({"enabled", "name", "external_id", "account_permission"}),
    redacted_fields=frozenset({"root_key"}),
    key_cascade=KEY_CASCADE_ROOT,
)


async def create_account(
    session: AsyncSession,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
    *,
    settings: Settings | None = None,
) -> Account:
    resolved = settings or get_settings()
    root_key = await encrypt_with(generate_random_key(), master_secret(resolved), settings=resolved)
    account = Account(
        root_key=root_key,
        account_permission=int(AccountPermission.DOMAIN),
        enabled=True,
    )
    account = await update_account(session, account, attrs, actor)
    logger.info("account_created id=%s", account.id)
    return account


async def update_account(
    session: AsyncSession,
    account: Account,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
) -> Account:
    # A root key may be supplied only while the account has none; afterwards it is immutable.
    supplied_key = attrs.get("root_key") or attrs.get("key")
    if supplied_key and not account.root_key:
        account.root_key = supplied_key
    return await update_entity(session, ACCOUNT_PROFILE, account, attrs, actor)


async def decrypted_key(account: Account | None, *, settings: Settings | None = None) -> str:
    """Recover the account's plaintext root key; any failure raises ``CryptoError``."""
    if account is None or not account.root_key:
        raise CryptoError("Account root key is missing")
    resolved = settings or get_settings()
    try:
        return await decrypt_with(account.root_key, master_secret(resolved), settings=resolved)
    except DecryptionError as exc:
        logger.error("account_root_key_unrecoverable id=%s", account.id)
        raise CryptoError("Account root key is unrecoverable") from exc


async def get_account(session: AsyncSession, account_id: str | None) -> Account:
    return await get_entity(session, ACCOUNT_PROFILE, account_id)


async def enable_account(session: AsyncSession, account_id: str | None, actor: Actor | None = None) -> Account:
    return await set_enabled_by_id(session, ACCOUNT_PROFILE, account_id, True, actor)


async def disable_account(session: AsyncSession, account_id: str | None, actor: Actor | None = None) -> Account:
    return await set_enabled_by_id(session, ACCOUNT_PROFILE, account_id, False, actor)


def export_account(account: Account) -> dict[str, Any]:
    return export_entity(ACCOUNT_PROFILE, account)


async def query_accounts(
    session: AsyncSession, query: Mapping[str, Any] | None = None, *, hide_superadmin: bool = False
) -> dict[str, Any]:
    return await query_entities(session, ACCOUNT_PROFILE, query, hide_superadmin=hide_superadmin)
