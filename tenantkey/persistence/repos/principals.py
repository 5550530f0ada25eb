from __future__ import annotations

import logging
from typing import Any, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tenantkey.core.errors import ConcurrencyError, ConflictError, PersistenceError
from tenantkey.domain.models import Base


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


def _filter_clauses(model: type[ModelT], filters: dict[str, Any]) -> list[Any]:
    # Equality filters only; callers validate field names against their whitelist.
    return [getattr(model, field) == value for field, value in filters.items()]


async def get_by_id(session: AsyncSession, model: type[ModelT], row_id: str) -> ModelT | None:
    try:
        return await session.get(model, row_id)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{model.__tablename__} lookup failed") from exc


async def get_by_field(session: AsyncSession, model: type[ModelT], field: str, value: Any) -> ModelT | None:
    try:
        result = await session.execute(select(model).where(getattr(model, field) == value).limit(1))
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{model.__tablename__} lookup failed") from exc
    return result.scalar_one_or_none()


async def list_rows(
    session: AsyncSession,
    model: type[ModelT],
    *,
    filters: dict[str, Any] | None = None,
    offset: int | None = None,
    limit: int | None = None,
    clauses: Sequence[Any] = (),
) -> list[ModelT]:
    # Newest first by audit creation time; unstamped rows sink to the end, id breaks ties.
    stmt = select(model).where(*_filter_clauses(model, filters or {}), *clauses)
    stmt = stmt.order_by(model.created_at.desc().nulls_last(), model.id.desc())
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{model.__tablename__} query failed") from exc
    return list(result.scalars().all())


async def count_rows(
    session: AsyncSession,
    model: type[ModelT],
    *,
    filters: dict[str, Any] | None = None,
    clauses: Sequence[Any] = (),
) -> int:
    stmt = select(func.count()).select_from(model).where(*_filter_clauses(model, filters or {}), *clauses)
    try:
        result = await session.execute(stmt)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"{model.__tablename__} count failed") from exc
    return int(result.scalar_one())


async def save(session: AsyncSession, row: ModelT) -> ModelT:
    # Commit one entity; translate driver failures into the persistence error taxonomy.
    table = row.__tablename__
    row_id = getattr(row, "id", None)
    session.add(row)
    try:
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        logger.warning("entity_save_conflict table=%s id=%s", table, row_id)
        raise ConcurrencyError(f"{table} row was modified concurrently") from exc
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(f"{table} violates a uniqueness constraint") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("entity_save_failed table=%s", table, exc_info=exc)
        raise PersistenceError(f"{table} save failed") from exc
    await session.refresh(row)
    return row

