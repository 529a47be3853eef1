"""Checklist items owned by a single task."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from task_tracker.core.time import utcnow
from task_tracker.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Subtask(QueryModel, table=True):
    """Subtask row; ``task_id`` is fixed at creation."""

    __tablename__ = "subtasks"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    task_id: UUID = Field(foreign_key="tasks.id", index=True)
    title: str
    completed: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
