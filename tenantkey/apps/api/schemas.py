from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class RecordHistory(BaseModel):
    created_at: str | None = None
    created_by: str | None = None
    created_by_type: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None
    updated_by_type: str | None = None


class Paging(BaseModel):
    offset: int
    limit: int
    total: int
    page: int
    total_pages: int


class EntityResponse(BaseModel):
    id: str
    enabled: bool
    external_id: str | None = None
    extensors: dict[str, Any] | None = None
    record_history: RecordHistory


class AccountResponse(EntityResponse):
    name: str | None = None
    account_permission: str | None = None


class ClientResponse(EntityResponse):
    name: str
    account_id: str
    # Plaintext client secret; only ever returned to account administrators.
    secret: str
    access_permission: str | None = None


class UserResponse(EntityResponse):
    account_id: str
    public_address: str
    user_permission: str | None = None


class AccountListResponse(BaseModel):
    results: list[AccountResponse]
    paging: Paging | None = None


class ClientListResponse(BaseModel):
    results: list[ClientResponse]
    paging: Paging | None = None


class UserListResponse(BaseModel):
    results: list[UserResponse]
    paging: Paging | None = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str
    api_server: str
    auth_server: str

