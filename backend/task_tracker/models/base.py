"""Shared SQLModel base classes for table models."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from task_tracker.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """Base for table models that expose ``Model.objects`` query helpers."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
