"""Task model, status/priority enums, and the trash lifecycle axis."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from task_tracker.core.time import utcnow
from task_tracker.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class TaskStatus(str, Enum):
    """Workflow status of a task."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class TaskPriority(str, Enum):
    """Caller- or AI-assigned urgency."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TrashState(str, Enum):
    """Whether a task is live or sitting in the owner's trash."""

    ACTIVE = "ACTIVE"
    TRASHED = "TRASHED"


# Statuses the all-subtasks-done rule may promote to COMPLETED.
AUTO_COMPLETABLE_STATUSES = frozenset({TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value})
AUTO_COMPLETED_NOTE = "Automatically completed (all subtasks done)"


class Task(QueryModel, table=True):
    """Owner-scoped work item with optional AI-suggested metadata."""

    __tablename__ = "tasks"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(foreign_key="users.id", index=True)

    title: str
    description: str | None = None
    suggested_description: str | None = None
    due_date: datetime = Field(index=True)
    priority: str = Field(default=TaskPriority.MEDIUM.value, index=True)
    suggested_priority: str | None = None
    status: str = Field(default=TaskStatus.PENDING.value, index=True)

    status_note: str | None = None
    priority_note: str | None = None
    ai_updated_at: datetime | None = None
    deleted_at: datetime | None = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def trash_state(self) -> TrashState:
        return TrashState.ACTIVE if self.deleted_at is None else TrashState.TRASHED
