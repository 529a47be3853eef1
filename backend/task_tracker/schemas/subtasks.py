"""Schemas for subtask create, update, and read payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class SubtaskCreate(SQLModel):
    """Manual subtask title, or a request for AI-generated subtasks (not both)."""

    title: str | None = Field(default=None, examples=["Draft outline"])
    generate_with_ai: bool = Field(
        default=False,
        description="Ask the advisor to break the parent task into subtasks.",
    )


class SubtaskUpdate(SQLModel):
    """Partial subtask update; only supplied fields change."""

    title: str | None = None
    completed: bool | None = None


class SubtaskRead(SQLModel):
    """Subtask payload returned by read endpoints."""

    id: UUID
    task_id: UUID
    title: str
    completed: bool
    created_at: datetime
    updated_at: datetime


class SubtaskMutationResponse(SQLModel):
    """Result of a subtask create or update."""

    message: str
    subtasks: list[SubtaskRead] = Field(default_factory=list)
    task_status: str | None = Field(
        default=None,
        description="Parent task status after the write, reflecting auto-completion.",
    )


class SubtaskListResponse(SQLModel):
    """Subtasks of one task, incomplete first."""

    subtasks: list[SubtaskRead] = Field(default_factory=list)
