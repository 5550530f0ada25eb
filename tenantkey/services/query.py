from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tenantkey.core.config import get_settings
from tenantkey.core.errors import ValidationError
from tenantkey.persistence.repos.principals import ModelT, count_rows, list_rows


# Control keys consumed by the listing contract; everything else is a field filter.
CONTROL_KEYS = frozenset({"offset", "limit", "all", "show_disabled", "search"})

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ListingParams:
    offset: int
    limit: int
    all: bool
    filters: dict[str, Any]


def coerce_bool(value: Any) -> bool:
    # Query strings deliver "true"/"false"; Python callers deliver real booleans.
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    normalized = str(value).strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ValidationError(f"Invalid boolean value: {value}")


def coerce_non_negative_int(value: Any, *, default: int, field: str) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {field}") from exc
    if number < 0:
        raise ValidationError(f"Invalid {field}")
    return number


def parse_listing_params(query: Mapping[str, Any], *, allowed_filters: frozenset[str]) -> ListingParams:
    """Split a raw listing request into paging controls and whitelisted field filters."""
    settings = get_settings()
    filters: dict[str, Any] = {}
    for key, value in query.items():
        if key in CONTROL_KEYS or value is None:
            continue
        if key not in allowed_filters:
            raise ValidationError(f"Unsupported filter: {key}")
        filters[key] = coerce_bool(value) if key == "enabled" else value

    # Only enabled rows unless the caller opts in to disabled ones or filters on enabled explicitly.
    if not coerce_bool(query.get("show_disabled")) and "enabled" not in filters:
        filters["enabled"] = True

    offset = coerce_non_negative_int(query.get("offset"), default=0, field="offset")
    limit = coerce_non_negative_int(query.get("limit"), default=settings.default_page_limit, field="limit")
    if limit == 0:
        limit = settings.default_page_limit
    limit = min(limit, settings.max_page_limit)
    return ListingParams(offset=offset, limit=limit, all=coerce_bool(query.get("all")), filters=filters)


def build_paging(*, offset: int, limit: int, total: int) -> dict[str, int]:
    return {
        "offset": offset,
        "limit": limit,
        "total": total,
        "page": offset // limit + 1,
        "total_pages": math.ceil(total / limit),
    }


async def query_rows(
    session: AsyncSession,
    model: type[ModelT],
    query: Mapping[str, Any],
    *,
    allowed_filters: frozenset[str],
    clauses: Sequence[Any] = (),
) -> dict[str, Any]:
    """Run the shared listing contract: ``{results, paging}`` or ``{results}`` when ``all`` is set."""
    params = parse_listing_params(query, allowed_filters=allowed_filters)
    if params.all:
        rows = await list_rows(session, model, filters=params.filters, clauses=clauses)
        return {"results": rows}
    total = await count_rows(session, model, filters=params.filters, clauses=clauses)
    rows = await list_rows(
        session, model, filters=params.filters, offset=params.offset, limit=params.limit, clauses=clauses
    )
    return {"results": rows, "paging": build_paging(offset=params.offset, limit=params.limit, total=total)}
