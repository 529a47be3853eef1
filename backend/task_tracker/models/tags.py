"""Tag catalog and the task/tag association table."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from task_tracker.core.time import utcnow
from task_tracker.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Tag(QueryModel, table=True):
    """Globally unique, case-sensitive tag name."""

    __tablename__ = "tags"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)


class TaskTag(QueryModel, table=True):
    """Many-to-many link between tasks and tags."""

    __tablename__ = "task_tags"  # pyright: ignore[reportAssignmentType]

    task_id: UUID = Field(foreign_key="tasks.id", primary_key=True)
    tag_id: UUID = Field(foreign_key="tags.id", primary_key=True, index=True)
