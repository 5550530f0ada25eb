from __future__ import annotations

from enum import IntEnum
from typing import Any, TypeVar

from tenantkey.core.errors import ValidationError


class AccountPermission(IntEnum):
    SUPERADMIN = 0
    ADMINISTRATOR = 1
    DOMAIN = 2


class AccessPermission(IntEnum):
    READWRITE = 0
    READONLY = 1


class UserPermission(IntEnum):
    ADMINISTRATOR = 0
    USER = 1


PermissionT = TypeVar("PermissionT", bound=IntEnum)


def parse_permission(registry: type[PermissionT], value: Any, *, field: str) -> PermissionT:
    # Map an external role name onto its stored code; unknown names are rejected, never defaulted.
    if isinstance(value, registry):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field}")
    try:
        return registry[value.strip().upper()]
    except KeyError as exc:
        raise ValidationError(f"Invalid {field}") from exc


def permission_name(registry: type[IntEnum], code: int | None) -> str | None:
    # Render stored codes for export views; unknown codes export as None.
    if code is None:
        return None
    try:
        return registry(code).name
    except ValueError:
        return None


def _has_permission(entity: Any, attr: str, registry: type[IntEnum], expected: IntEnum) -> bool:
    # Classification must never raise: it gates authorization checks.
    if entity is None:
        return False
    code = getattr(entity, attr, None)
    if code is None:
        return False
    try:
        return registry(code) is expected
    except (ValueError, TypeError):
        return False


def is_super_admin(account: Any) -> bool:
    return _has_permission(account, "account_permission", AccountPermission, AccountPermission.SUPERADMIN)


def is_admin(account: Any) -> bool:
    return _has_permission(account, "account_permission", AccountPermission, AccountPermission.ADMINISTRATOR)


def is_domain(account: Any) -> bool:
    return _has_permission(account, "account_permission", AccountPermission, AccountPermission.DOMAIN)


def is_read_only(client: Any) -> bool:
    return _has_permission(client, "access_permission", AccessPermission, AccessPermission.READONLY)


def is_read_write(client: Any) -> bool:
    return _has_permission(client, "access_permission", AccessPermission, AccessPermission.READWRITE)


def is_user_admin(user: Any) -> bool:
    return _has_permission(user, "user_permission", UserPermission, UserPermission.ADMINISTRATOR)


def is_user(user: Any) -> bool:
    return _has_permission(user, "user_permission", UserPermission, UserPermission.USER)
