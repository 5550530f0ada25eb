from __future__ import annotations

from tenantkey.domain.models import Account, Client, User
from tenantkey.services.audit import Actor, export_record_history, stamp_record_history


def test_actor_prefers_user_over_client() -> None:
    client = Client(id="c1", name="svc", secret="x")
    user = User(id="u1", public_address="0xabc", nonce=1)
    assert Actor(client=client).actor_type == "CLIENT"
    assert Actor(client=client).actor_id == "c1"
    assert Actor(client=client, user=user).actor_type == "USER"
    assert Actor(client=client, user=user).actor_id == "u1"


def test_first_stamp_is_creation_then_updates() -> None:
    row = Account(root_key="k")
    stamp_record_history(row, Actor(client=Client(id="c1", name="svc", secret="x")))
    assert row.created_by == "c1"
    assert row.created_by_type == "CLIENT"
    assert row.updated_at is None

    stamp_record_history(row, Actor(user=User(id="u1", public_address="0xabc", nonce=1)))
    assert row.created_by == "c1"
    assert row.updated_by == "u1"
    assert row.updated_by_type == "USER"


def test_no_actor_leaves_history_untouched() -> None:
    row = Account(root_key="k")
    stamp_record_history(row, None)
    assert export_record_history(row) == {
        "created_at": None,
        "created_by": None,
        "created_by_type": None,
        "updated_at": None,
        "updated_by": None,
        "updated_by_type": None,
    }
