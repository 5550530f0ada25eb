from __future__ import annotations

import pytest

from tenantkey.core.errors import AuthorizationError, DecryptionError, ValidationError
from tenantkey.domain.permissions import is_read_only, is_read_write
from tenantkey.services.credentials.accounts import decrypted_key
from tenantkey.services.credentials.clients import (
    create_client,
    decrypt_secret,
    disable_client,
    export_client,
    export_clients,
    get_by_name,
    issue_token,
    list_all_exported,
    list_by_account,
    query_clients,
    refresh_token,
    update_client,
    validate_refresh_key,
    validate_secret,
)
from tenantkey.services.crypto import cryption
from tenantkey.services.crypto.tokens import decode_token
from tenantkey.services.crypto.utils import decrypt_with
from tenantkey.tests.utils.principals import make_account, make_client


async def test_create_requires_account_and_name(session) -> None:
    account = await make_account(session)
    with pytest.raises(ValidationError):
        await create_client(session, {"name": "svc"}, None)
    with pytest.raises(ValidationError):
        await create_client(session, {}, account)


async def test_new_client_defaults_to_read_only(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account, permission=None)
    assert is_read_only(client)
    await update_client(session, client, {"access_permission": "readwrite"})
    assert is_read_write(client)


async def test_secret_round_trips_under_account_key(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account)
    secret = await decrypt_secret(client, account)
    assert len(secret) == 32
    assert await validate_secret(client, secret, account)
    assert not await validate_secret(client, secret[:-1] + "x", account)
    assert not await validate_secret(client, None, account)


async def test_cascade_isolation_between_accounts(session) -> None:
    account_a = await make_account(session, name="a")
    account_b = await make_account(session, name="b")
    client = await make_client(session, account_a)

    with pytest.raises(AuthorizationError):
        await decrypt_secret(client, account_b)
    with pytest.raises(DecryptionError):
        await decrypt_with(client.secret, await decrypted_key(account_b))


async def test_refresh_rotation_invalidates_previous_key(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account)

    first = await issue_token(session, client, account)
    first_key = decode_token(first["refresh_token"])["refresh_key"]
    assert await validate_refresh_key(client, first_key, account)

    second = await issue_token(session, client, account)
    second_key = decode_token(second["refresh_token"])["refresh_key"]
    assert await validate_refresh_key(client, second_key, account)
    assert not await validate_refresh_key(client, first_key, account)
    assert second_key not in client.refresh_key


async def test_issue_token_claims_and_envelope(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account)
    envelope = await issue_token(session, client, account)
    assert envelope["token_type"] == "Bearer"
    assert envelope["expires_in"] == 86400
    claims = decode_token(envelope["access_token"])
    assert claims["account"] == account.id
    assert claims["client"] == client.id
    assert "refresh_key" not in claims


async def test_export_shows_plaintext_secret_only(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account, name="exporter")
    await issue_token(session, client, account)
    exported = await export_client(client, account)
    assert exported["secret"] == await decrypt_secret(client, account)
    assert exported["access_permission"] == "READWRITE"
    assert "refresh_key" not in exported
    assert exported["account_id"] == account.id


async def test_lookups_by_name_and_account(session) -> None:
    account_a = await make_account(session, name="a")
    account_b = await make_account(session, name="b")
    await make_client(session, account_a, name="shared")
    await make_client(session, account_a, name="other")
    await make_client(session, account_b, name="shared")

    matches = await get_by_name(session, "shared", account_a)
    assert [c.account_id for c in matches] == [account_a.id]
    with pytest.raises(AuthorizationError):
        await get_by_name(session, "", account_a)

    exported = await list_by_account(session, account_a)
    assert sorted(c["name"] for c in exported) == ["other", "shared"]

    everything = await list_all_exported(session)
    assert len(everything) == 3
    assert all(len(c["secret"]) == 32 for c in everything)


async def test_disabled_clients_drop_out_of_default_listing(session) -> None:
    account = await make_account(session)
    keep = await make_client(session, account, name="keep")
    gone = await make_client(session, account, name="gone")
    await disable_client(session, gone.id)

    listing = await query_clients(session, {"account_id": account.id})
    assert [c.id for c in listing["results"]] == [keep.id]
    with_disabled = await query_clients(session, {"account_id": account.id, "show_disabled": "true"})
    assert {c.id for c in with_disabled["results"]} == {keep.id, gone.id}

    read_write = await query_clients(session, {"access_permission": "READWRITE"})
    assert read_write["paging"]["total"] == 1


async def test_bogus_permission_leaves_client_untouched(session) -> None:
    account = await make_account(session)
    client = await make_client(session, account, name="steady", permission=None)
    with pytest.raises(ValidationError, match="Invalid access_permission"):
        await update_client(session, client, {"name": "moved", "access_permission": "BOGUS"})
    assert client.name == "steady"
    assert is_read_only(client)


async def test_token_then_second_refresh_scenario(session) -> None:
    account = await make_account(session, name="E")
    client = await make_client(session, account, name="C")

    envelope = await issue_token(session, client, account)
    assert decode_token(envelope["access_token"])["client"] == client.id
    first_key = decode_token(envelope["refresh_token"])["refresh_key"]

    await refresh_token(session, client, account)
    assert not await validate_refresh_key(client, first_key, account)


@pytest.fixture
def derivations(monkeypatch) -> list[int]:
    # Record every scrypt derivation; encrypt and decrypt resolve derive_key at call time.
    calls: list[int] = []
    original = cryption.derive_key

    def counting(*args, **kwargs):
        calls.append(1)
        return original(*args, **kwargs)

    monkeypatch.setattr(cryption, "derive_key", counting)
    return calls


async def test_account_listing_recovers_root_key_once(session, derivations) -> None:
    account = await make_account(session)
    for index in range(5):
        await make_client(session, account, name=f"batch-{index}")
    derivations.clear()

    exported = await list_by_account(session, account)
    assert len(exported) == 5
    assert len(derivations) == 5 + 1


async def test_batch_export_recovers_each_root_key_once(session, derivations) -> None:
    account_a = await make_account(session, name="a")
    account_b = await make_account(session, name="b")
    clients = [await make_client(session, account_a, name=f"a-{index}") for index in range(4)]
    clients += [await make_client(session, account_b, name=f"b-{index}") for index in range(3)]
    derivations.clear()

    exported = await export_clients(session, clients)
    assert len(derivations) == 7 + 2
    assert [c["id"] for c in exported] == [c.id for c in clients]
    derivations.clear()
    assert exported[0]["secret"] == await decrypt_secret(clients[0], account_a)
    assert len(derivations) == 2
