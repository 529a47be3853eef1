"""Schemas for task create, update, list, and trash payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field, field_validator
from sqlmodel import SQLModel

from task_tracker.models.tasks import TaskPriority, TaskStatus, TrashState
from task_tracker.schemas.common import naive_utc_or_none
from task_tracker.schemas.subtasks import SubtaskRead

RUNTIME_ANNOTATION_TYPES = (datetime, UUID, TaskPriority, TaskStatus, TrashState)

InitialTaskStatus = Literal["PENDING", "IN_PROGRESS"]


class TaskCreate(SQLModel):
    """Payload for creating a task.

    ``title`` and ``due_date`` are validated by the lifecycle engine so that a
    missing value surfaces as an ``invalid_argument`` domain error.
    """

    title: str | None = Field(default=None, examples=["Write report"])
    description: str | None = None
    due_date: datetime | None = Field(default=None, examples=["2026-10-23T17:00:00Z"])
    priority: TaskPriority | None = None
    status: InitialTaskStatus | None = None
    tags: list[str] = Field(default_factory=list, examples=[["work", "q4"]])
    use_ai: bool = Field(
        default=False,
        description="Ask the advisor for a suggested priority, description and subtasks.",
    )

    @field_validator("due_date")
    @classmethod
    def _normalize_due_date(cls, value: datetime | None) -> datetime | None:
        return naive_utc_or_none(value)


class TaskUpdate(SQLModel):
    """Partial task update; unset fields keep their current value."""

    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    use_ai: bool = False

    @field_validator("due_date")
    @classmethod
    def _normalize_due_date(cls, value: datetime | None) -> datetime | None:
        return naive_utc_or_none(value)


class TaskRead(SQLModel):
    """Task payload including tags and subtasks."""

    id: UUID
    owner_id: UUID
    title: str
    description: str | None = None
    suggested_description: str | None = None
    due_date: datetime
    priority: TaskPriority
    suggested_priority: TaskPriority | None = None
    status: TaskStatus
    trash_state: TrashState
    status_note: str | None = None
    priority_note: str | None = None
    ai_updated_at: datetime | None = None
    deleted_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    subtasks: list[SubtaskRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class PrioritizationRead(SQLModel):
    """Advisor ordering returned next to a prioritized task list."""

    order: list[UUID] = Field(default_factory=list)
    reasoning: str = ""


class TaskListResponse(SQLModel):
    """Active tasks, optionally reordered by the advisor."""

    tasks: list[TaskRead] = Field(default_factory=list)
    prioritization: PrioritizationRead | None = None


class TaskMutationResponse(SQLModel):
    """Result of a task create, update, or restore."""

    message: str
    task: TaskRead
    ai_suggestion: dict[str, object] | None = None


class DeleteTaskResponse(SQLModel):
    """Result of a soft or hard delete."""

    message: str
    task_id: UUID
    hard: bool


class TrashListResponse(SQLModel):
    """Trashed tasks, most recently trashed first."""

    tasks: list[TaskRead] = Field(default_factory=list)


class EmptyTrashResponse(SQLModel):
    """Number of trashed tasks permanently removed."""

    message: str
    count: int
