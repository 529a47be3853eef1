"""Append-only audit trail of AI suggestions applied to tasks."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from task_tracker.core.time import utcnow
from task_tracker.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class AuditLogType(str, Enum):
    """Kinds of AI-assisted operations that leave an audit entry."""

    TASK_CREATION = "TASK_CREATION"
    TASK_UPDATE = "TASK_UPDATE"
    SUBTASK_GENERATION = "SUBTASK_GENERATION"


class AuditLog(QueryModel, table=True):
    """Raw advisor suggestion recorded for traceability.

    ``task_id`` carries no foreign key so the trail survives a hard delete.
    """

    __tablename__ = "audit_logs"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(index=True)
    task_id: UUID = Field(index=True)
    type: str = Field(index=True)
    suggestion: dict[str, object] | list[object] | None = Field(
        default=None,
        sa_column=Column(JSON),
    )
    created_at: datetime = Field(default_factory=utcnow)
