"""Schemas for the per-task audit trail."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class AuditLogRead(SQLModel):
    """Audit entry payload returned by read endpoints."""

    id: UUID
    user_id: UUID
    task_id: UUID
    type: str
    suggestion: dict[str, object] | list[object] | None = None
    created_at: datetime
