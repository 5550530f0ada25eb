from __future__ import annotations

from types import SimpleNamespace

import pytest

from tenantkey.core.errors import ValidationError
from tenantkey.domain.permissions import (
    AccessPermission,
    AccountPermission,
    UserPermission,
    is_admin,
    is_domain,
    is_read_only,
    is_read_write,
    is_super_admin,
    is_user,
    is_user_admin,
    parse_permission,
    permission_name,
)


def test_registry_codes_are_stable() -> None:
    assert [int(p) for p in AccountPermission] == [0, 1, 2]
    assert int(AccessPermission.READONLY) == 1
    assert int(UserPermission.ADMINISTRATOR) == 0


def test_parse_permission_is_case_insensitive() -> None:
    assert parse_permission(AccountPermission, "superadmin", field="account_permission") is AccountPermission.SUPERADMIN
    assert parse_permission(AccessPermission, " ReadWrite ", field="access_permission") is AccessPermission.READWRITE


@pytest.mark.parametrize("value", ["BOGUS", "", None, 0, "ROOT"])
def test_parse_permission_rejects_unknown(value) -> None:
    with pytest.raises(ValidationError, match="Invalid account_permission"):
        parse_permission(AccountPermission, value, field="account_permission")


def test_permission_name_handles_unknown_codes() -> None:
    assert permission_name(UserPermission, 1) == "USER"
    assert permission_name(UserPermission, 7) is None
    assert permission_name(UserPermission, None) is None


def test_account_predicates() -> None:
    root = SimpleNamespace(account_permission=0)
    assert is_super_admin(root)
    assert not is_admin(root)
    assert is_admin(SimpleNamespace(account_permission=1))
    assert is_domain(SimpleNamespace(account_permission=2))


def test_client_and_user_predicates() -> None:
    assert is_read_only(SimpleNamespace(access_permission=1))
    assert is_read_write(SimpleNamespace(access_permission=0))
    assert is_user_admin(SimpleNamespace(user_permission=0))
    assert is_user(SimpleNamespace(user_permission=1))


@pytest.mark.parametrize("entity", [None, SimpleNamespace(), SimpleNamespace(account_permission=99), SimpleNamespace(account_permission="x")])
def test_predicates_never_raise(entity) -> None:
    assert not is_super_admin(entity)
    assert not is_domain(entity)
