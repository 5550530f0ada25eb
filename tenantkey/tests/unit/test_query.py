from __future__ import annotations

import pytest

from tenantkey.core.errors import ValidationError
from tenantkey.services.query import build_paging, coerce_bool, parse_listing_params


FILTERS = frozenset({"enabled", "name", "account_id"})


def test_defaults_hide_disabled_rows() -> None:
    params = parse_listing_params({}, allowed_filters=FILTERS)
    assert params.offset == 0
    assert params.limit == 10
    assert params.all is False
    assert params.filters == {"enabled": True}


def test_show_disabled_drops_enabled_filter() -> None:
    params = parse_listing_params({"show_disabled": "true"}, allowed_filters=FILTERS)
    assert params.filters == {}


def test_explicit_enabled_filter_wins() -> None:
    params = parse_listing_params({"enabled": "false", "name": "svc"}, allowed_filters=FILTERS)
    assert params.filters == {"enabled": False, "name": "svc"}


def test_unknown_filter_rejected() -> None:
    with pytest.raises(ValidationError, match="Unsupported filter: root_key"):
        parse_listing_params({"root_key": "x"}, allowed_filters=FILTERS)


def test_limit_zero_uses_default_and_large_limit_is_capped() -> None:
    assert parse_listing_params({"limit": "0"}, allowed_filters=FILTERS).limit == 10
    assert parse_listing_params({"limit": "10000"}, allowed_filters=FILTERS).limit == 500


@pytest.mark.parametrize("query", [{"offset": "-1"}, {"limit": "ten"}, {"all": "maybe"}])
def test_invalid_controls_rejected(query) -> None:
    with pytest.raises(ValidationError):
        parse_listing_params(query, allowed_filters=FILTERS)


@pytest.mark.parametrize(
    ("offset", "limit", "total", "page", "total_pages"),
    [(0, 10, 25, 1, 3), (20, 10, 25, 3, 3), (0, 10, 0, 1, 0), (5, 5, 10, 2, 2)],
)
def test_paging_math(offset, limit, total, page, total_pages) -> None:
    paging = build_paging(offset=offset, limit=limit, total=total)
    assert paging == {"offset": offset, "limit": limit, "total": total, "page": page, "total_pages": total_pages}


def test_coerce_bool() -> None:
    assert coerce_bool("Yes") is True
    assert coerce_bool("0") is False
    assert coerce_bool(None) is False
    assert coerce_bool(1) is True
