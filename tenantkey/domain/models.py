from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return uuid4().hex


class Base(DeclarativeBase):
    pass


class CredentialEntityMixin:
    """Columns shared by every credential-bearing entity.

    The audit record is stored flat and rendered as a nested ``record_history``
    map by the export views. Each mapped class declares its own ``version``
    column as the optimistic concurrency counter.
    """

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    extensors: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_by_type: Mapped[str | None] = mapped_column(String(16), nullable=True)


class Account(CredentialEntityMixin, Base):
    __tablename__ = "accounts"

    name: Mapped[str | None] = mapped_column(String, nullable=True)
    # Root key ciphertext under the process master secret; written once, never exported.
    root_key: Mapped[str] = mapped_column(Text, nullable=False)
    account_permission: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    # Stale read-modify-write cycles raise StaleDataError instead of silently winning.
    __mapper_args__ = {"version_id_col": version}


class Client(CredentialEntityMixin, Base):
    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    account_id: Mapped[str] = mapped_column(String(32), ForeignKey("accounts.id"), index=True)
    # Ciphertext under the owning account's decrypted root key.
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    access_permission: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Ciphertext under the owning account's decrypted root key; replaced on every refresh.
    refresh_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}


class User(CredentialEntityMixin, Base):
    __tablename__ = "users"

    account_id: Mapped[str] = mapped_column(String(32), ForeignKey("accounts.id"), index=True)
    # Lowercased; unique across all accounts.
    public_address: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_permission: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    nonce: Mapped[int] = mapped_column(Integer, nullable=False)
    # Plaintext unless encrypt_user_refresh_keys is enabled.
    refresh_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}
