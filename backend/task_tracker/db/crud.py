"""Generic create/update/delete helpers shared by services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel.ext.asyncio.session import AsyncSession

ModelT = TypeVar("ModelT", bound=SQLModel)


async def get_or_create(
    session: AsyncSession,
    model: type[ModelT],
    *,
    defaults: Mapping[str, Any] | None = None,
    commit: bool = True,
    **lookup: Any,
) -> tuple[ModelT, bool]:
    """Fetch the row matching ``lookup`` or insert it; returns ``(row, created)``.

    The insert runs inside a savepoint so that a concurrent insert of the same
    unique key degrades to a re-read instead of aborting the outer transaction.
    """
    statement = select(model)
    for field_name, value in lookup.items():
        statement = statement.where(col(getattr(model, field_name)) == value)

    existing = (await session.exec(statement)).first()
    if existing is not None:
        return existing, False

    obj = model(**lookup, **dict(defaults or {}))
    try:
        async with session.begin_nested():
            session.add(obj)
    except IntegrityError:
        existing = (await session.exec(statement)).first()
        if existing is None:
            raise
        return existing, False

    if commit:
        await session.commit()
        await session.refresh(obj)
    return obj, True


async def patch(
    session: AsyncSession,
    obj: ModelT,
    updates: Mapping[str, Any],
    *,
    commit: bool = True,
) -> ModelT:
    """Apply field updates to a loaded row."""
    for field_name, value in updates.items():
        setattr(obj, field_name, value)
    session.add(obj)
    if commit:
        await session.commit()
        await session.refresh(obj)
    return obj


async def delete(session: AsyncSession, obj: SQLModel, *, commit: bool = True) -> None:
    """Delete a loaded row."""
    await session.delete(obj)
    if commit:
        await session.commit()


async def delete_where(
    session: AsyncSession,
    model: type[SQLModel],
    *criteria: ColumnElement[bool],
    commit: bool = True,
) -> int:
    """Bulk-delete rows matching ``criteria``; returns the affected row count."""
    result = await session.exec(sa_delete(model).where(*criteria))  # type: ignore[call-overload]
    if commit:
        await session.commit()
    return int(result.rowcount or 0)
