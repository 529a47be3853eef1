"""Chainable, immutable query helpers exposed as ``Model.objects``.

Usage::

    task = await Task.objects.by_id(task_id).first(session)
    tasks = await (
        Task.objects.filter_by(owner_id=owner_id)
        .filter(col(Task.deleted_at).is_(None))
        .order_by(col(Task.due_date).asc())
        .all(session)
    )
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """A lazily executed SELECT over a single model."""

    model: type[ModelT]
    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: ColumnElement[bool] | bool) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.where(*criteria))

    def filter_by(self, **kwargs: object) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.filter_by(**kwargs))

    def order_by(self, *ordering: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.order_by(*ordering))

    def for_update(self) -> QuerySet[ModelT]:
        """Lock matched rows until commit (a no-op on SQLite)."""
        return replace(self, statement=self.statement.with_for_update())

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement))

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement.limit(1))).first()


class ModelManager(Generic[ModelT]):
    """Entry point for building query sets against one model."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def _queryset(self) -> QuerySet[ModelT]:
        return QuerySet(model=self.model, statement=select(self.model))

    def all(self) -> QuerySet[ModelT]:
        return self._queryset()

    def filter_by(self, **kwargs: object) -> QuerySet[ModelT]:
        return self._queryset().filter_by(**kwargs)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        return self.by_field("id", obj_id)

    def by_field(self, field_name: str, value: object) -> QuerySet[ModelT]:
        return self._queryset().filter(col(getattr(self.model, field_name)) == value)

    def by_field_in(self, field_name: str, values: Iterable[object]) -> QuerySet[ModelT]:
        return self._queryset().filter(col(getattr(self.model, field_name)).in_(list(values)))


class ManagerDescriptor:
    """Class-level descriptor returning a manager bound to the accessing model."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
