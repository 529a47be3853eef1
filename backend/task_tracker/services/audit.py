"""Append-only audit trail for AI-assisted task operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlmodel import col

from task_tracker.core.time import utcnow
from task_tracker.models.audit_logs import AuditLog, AuditLogType
from task_tracker.models.tasks import Task
from task_tracker.services.errors import ForbiddenError, store_guard
from task_tracker.services.ownership import require_owner

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


async def record_audit(
    session: AsyncSession,
    *,
    user_id: UUID,
    task_id: UUID,
    log_type: AuditLogType,
    suggestion: dict[str, Any] | list[Any] | None,
    commit: bool = False,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction."""
    entry = AuditLog(
        user_id=user_id,
        task_id=task_id,
        type=log_type.value,
        suggestion=suggestion,
        created_at=utcnow(),
    )
    session.add(entry)
    if commit:
        await session.commit()
        await session.refresh(entry)
    return entry


async def list_task_audit_logs(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
) -> list[AuditLog]:
    """Return the caller's entries for a task, newest first.

    Entries outlive a hard-deleted task, so a missing task is not an error.
    """
    async with store_guard(
        session,
        operation="list_audit_logs",
        owner_id=owner_id,
        entity_id=task_id,
    ):
        await require_owner(session, owner_id)
        task = await Task.objects.by_id(task_id).first(session)
        if task is not None and task.owner_id != owner_id:
            raise ForbiddenError("Not authorized to access this task")
        return await (
            AuditLog.objects.filter_by(task_id=task_id, user_id=owner_id)
            .order_by(col(AuditLog.created_at).desc())
            .all(session)
        )
