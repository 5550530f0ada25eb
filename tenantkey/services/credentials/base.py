"""Behaviour shared by every credential-bearing entity.

Accounts, clients and users differ only in their permission registry, the
fields an update may touch, the fields a listing may filter on and what the
export view hides. An :class:`EntityProfile` captures those differences and
the functions here implement update, enable/disable, export and listing once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.errors import NotFoundError, ValidationError
from tenantkey.domain.models import Account, CredentialEntityMixin
from tenantkey.domain.permissions import AccountPermission, parse_permission, permission_name
from tenantkey.persistence.repos.principals import get_by_id, save
from tenantkey.services.audit import Actor, export_record_history, stamp_record_history
from tenantkey.services.query import coerce_bool, query_rows


logger = logging.getLogger(__name__)

KEY_CASCADE_ROOT = "root"
KEY_CASCADE_DERIVED = "derived"

_AUDIT_COLUMNS = frozenset(
    {"created_at", "created_by", "created_by_type", "updated_at", "updated_by", "updated_by_type", "version"}
)


@dataclass(frozen=True)
class EntityProfile:
    kind: str
    model: type[CredentialEntityMixin]
    permission_field: str
    registry: type[IntEnum]
    # Plain fields copied from update input when present and truthy.
    updatable_fields: tuple[str, ...]
    filter_fields: frozenset[str]
    redacted_fields: frozenset[str]
    # Root entities hold a key under the master secret; derived ones under their account key.
    key_cascade: str = KEY_CASCADE_DERIVED


def apply_update(
    profile: EntityProfile,
    row: CredentialEntityMixin,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
) -> CredentialEntityMixin:
    """Whitelist-apply ``attrs`` onto ``row`` without persisting.

    The permission value is validated before anything is mutated, so a
    rejected update leaves the row untouched.
    """
    permission = None
    raw_permission = attrs.get(profile.permission_field)
    if raw_permission is not None and raw_permission != "":
        permission = parse_permission(profile.registry, raw_permission, field=profile.permission_field)
    enabled = None
    if attrs.get("enabled") is not None:
        enabled = coerce_bool(attrs["enabled"])

    for field in profile.updatable_fields:
        value = attrs.get(field)
        if value:
            setattr(row, field, value)
    if permission is not None:
        setattr(row, profile.permission_field, int(permission))
    if enabled is not None:
        row.enabled = enabled
    stamp_record_history(row, actor)
    return row


async def update_entity(
    session: AsyncSession,
    profile: EntityProfile,
    row: CredentialEntityMixin,
    attrs: Mapping[str, Any],
    actor: Actor | None = None,
) -> CredentialEntityMixin:
    apply_update(profile, row, attrs, actor)
    return await save(session, row)


async def get_entity(session: AsyncSession, profile: EntityProfile, row_id: str | None) -> CredentialEntityMixin:
    if not row_id or not isinstance(row_id, str):
        raise ValidationError("id is invalid")
    row = await get_by_id(session, profile.model, row_id)
    if row is None:
        raise NotFoundError(f"{profile.kind} not found")
    return row


async def set_enabled_by_id(
    session: AsyncSession,
    profile: EntityProfile,
    row_id: str | None,
    enabled: bool,
    actor: Actor | None = None,
) -> CredentialEntityMixin:
    # Entities are never hard-deleted; disabling is an ordinary update.
    row = await get_entity(session, profile, row_id)
    updated = await update_entity(session, profile, row, {"enabled": enabled}, actor)
    logger.info("entity_enabled_changed kind=%s id=%s enabled=%s", profile.kind, row.id, enabled)
    return updated


def export_entity(profile: EntityProfile, row: CredentialEntityMixin) -> dict[str, Any]:
    """Render ``row`` for external display with secrets and bookkeeping stripped."""
    data: dict[str, Any] = {}
    for column in sa_inspect(profile.model).columns:
        name = column.key
        if name in profile.redacted_fields or name in _AUDIT_COLUMNS:
            continue
        data[name] = getattr(row, name)
    data[profile.permission_field] = permission_name(profile.registry, getattr(row, profile.permission_field))
    data["record_history"] = export_record_history(row)
    return data


def _superadmin_exclusion(model: type[CredentialEntityMixin]) -> Any:
    superadmin = int(AccountPermission.SUPERADMIN)
    if model is Account:
        return Account.account_permission != superadmin
    return model.account_id.not_in(select(Account.id).where(Account.account_permission == superadmin))


async def query_entities(
    session: AsyncSession,
    profile: EntityProfile,
    query: Mapping[str, Any] | None = None,
    *,
    hide_superadmin: bool = False,
) -> dict[str, Any]:
    resolved = dict(query or {})
    # Permission filters arrive as registry names and are matched on the stored code.
    if resolved.get(profile.permission_field) is not None:
        resolved[profile.permission_field] = int(
            parse_permission(profile.registry, resolved[profile.permission_field], field=profile.permission_field)
        )
    clauses = [_superadmin_exclusion(profile.model)] if hide_superadmin else []
    return await query_rows(session, profile.model, resolved, allowed_filters=profile.filter_fields, clauses=clauses)
