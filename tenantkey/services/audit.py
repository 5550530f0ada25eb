from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from tenantkey.domain.models import Account, Client, CredentialEntityMixin, User


ACTOR_TYPE_USER = "USER"
ACTOR_TYPE_CLIENT = "CLIENT"


@dataclass(frozen=True)
class Actor:
    """Resolved principal making a call; used only to stamp audit records."""

    account: Account | None = None
    client: Client | None = None
    user: User | None = None

    @property
    def actor_type(self) -> str:
        return ACTOR_TYPE_USER if self.user is not None else ACTOR_TYPE_CLIENT

    @property
    def actor_id(self) -> str | None:
        principal = self.user if self.user is not None else self.client
        return principal.id if principal is not None else None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def stamp_record_history(row: CredentialEntityMixin, actor: Actor | None) -> None:
    # First stamped mutation records creation; every later one records the update.
    if actor is None:
        return
    now = _utc_now()
    if row.created_by is None and row.created_at is None:
        row.created_at = now
        row.created_by = actor.actor_id
        row.created_by_type = actor.actor_type
    else:
        row.updated_at = now
        row.updated_by = actor.actor_id
        row.updated_by_type = actor.actor_type


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def export_record_history(row: CredentialEntityMixin) -> dict[str, Any]:
    return {
        "created_at": _iso(row.created_at),
        "created_by": row.created_by,
        "created_by_type": row.created_by_type,
        "updated_at": _iso(row.updated_at),
        "updated_by": row.updated_by,
        "updated_by_type": row.updated_by_type,
    }
