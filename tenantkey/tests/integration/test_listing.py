from __future__ import annotations

import pytest

from tenantkey.core.errors import ValidationError
from tenantkey.services.audit import Actor
from tenantkey.services.credentials.accounts import disable_account, query_accounts
from tenantkey.services.credentials.clients import disable_client, query_clients
from tenantkey.services.credentials.users import disable_user, query_users
from tenantkey.tests.utils.principals import make_account, make_client, make_user


async def _seed_accounts(session, owner, actor):
    rows = [await make_account(session, name=f"acct-{i}", actor=actor) for i in range(4)]
    return [owner, *rows], disable_account, query_accounts


async def _seed_clients(session, owner, actor):
    rows = [await make_client(session, owner, name=f"svc-{i}", actor=actor) for i in range(4)]
    # The actor's own client is listed too.
    return [actor.client, *rows], disable_client, query_clients


async def _seed_users(session, owner, actor):
    rows = [(await make_user(session, owner, actor=actor))[0] for _ in range(5)]
    return rows, disable_user, query_users


@pytest.mark.parametrize("seed", [_seed_accounts, _seed_clients, _seed_users], ids=["accounts", "clients", "users"])
async def test_listing_contract_is_shared(session, seed) -> None:
    owner = await make_account(session, name="owner")
    actor_client = await make_client(session, owner, name="actor")
    actor = Actor(account=owner, client=actor_client)
    rows, disable, query = await seed(session, owner, actor)
    assert len(rows) == 5

    await disable(session, rows[-1].id)
    enabled_ids = {row.id for row in rows[:-1]}

    first_page = await query(session, {"limit": "2"})
    assert first_page["paging"] == {"offset": 0, "limit": 2, "total": 4, "page": 1, "total_pages": 2}
    second_page = await query(session, {"limit": "2", "offset": "2"})
    assert second_page["paging"]["page"] == 2
    paged_ids = {row.id for row in first_page["results"] + second_page["results"]}
    assert paged_ids == enabled_ids

    everything = await query(session, {"all": "true", "show_disabled": "true"})
    assert "paging" not in everything
    assert {row.id for row in everything["results"]} == {row.id for row in rows}

    only_disabled = await query(session, {"enabled": "false"})
    assert [row.id for row in only_disabled["results"]] == [rows[-1].id]

    with pytest.raises(ValidationError):
        await query(session, {"root_key": "x", "secret": "y", "nonce": "1"})


async def test_listing_orders_newest_first(session) -> None:
    owner = await make_account(session, name="owner")
    actor = Actor(account=owner, client=await make_client(session, owner, name="actor"))
    first = await make_client(session, owner, name="first", actor=actor)
    second = await make_client(session, owner, name="second", actor=actor)

    listing = await query_clients(session, {"account_id": owner.id})
    ids = [row.id for row in listing["results"]]
    assert ids.index(second.id) < ids.index(first.id)
