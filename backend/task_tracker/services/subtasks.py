"""Subtask operations and the all-subtasks-done completion rule."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlmodel import col, select

from task_tracker.core.logging import get_logger
from task_tracker.core.time import utcnow
from task_tracker.db import crud
from task_tracker.models.audit_logs import AuditLogType
from task_tracker.models.subtasks import Subtask
from task_tracker.models.tasks import AUTO_COMPLETABLE_STATUSES, AUTO_COMPLETED_NOTE, TaskStatus
from task_tracker.schemas.subtasks import SubtaskRead
from task_tracker.services.audit import record_audit
from task_tracker.services.errors import (
    InvalidArgumentError,
    SubtaskGenerationFailedError,
    store_guard,
)
from task_tracker.services.ownership import get_owned_task, get_task_subtask, require_owner
from task_tracker.services.tasks import stamp_sequence

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from task_tracker.models.tasks import Task
    from task_tracker.services.advisor import TaskAdvisor

logger = get_logger(__name__)


@dataclass
class SubtaskUpdateResult:
    subtask: SubtaskRead
    task_status: str
    auto_completed: bool = False


def _subtask_read(subtask: Subtask) -> SubtaskRead:
    return SubtaskRead.model_validate(subtask, from_attributes=True)


async def complete_parent_if_done(session: AsyncSession, task: Task) -> bool:
    """Mark ``task`` COMPLETED when every one of its subtasks is completed.

    Reads the subtask set fresh on every call, so concurrent or repeated
    invocations converge on the same result.
    """
    if task.status not in AUTO_COMPLETABLE_STATUSES:
        return False
    flags = list(
        await session.exec(select(Subtask.completed).where(col(Subtask.task_id) == task.id)),
    )
    if not flags or not all(flags):
        return False
    await crud.patch(
        session,
        task,
        {
            "status": TaskStatus.COMPLETED.value,
            "status_note": AUTO_COMPLETED_NOTE,
            "updated_at": utcnow(),
        },
        commit=False,
    )
    return True


async def create_subtask(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    advisor: TaskAdvisor,
    title: str | None = None,
    generate_with_ai: bool = False,
) -> list[SubtaskRead]:
    """Add one manual subtask, or every subtask the advisor suggests."""
    if (title is None) == (not generate_with_ai):
        raise InvalidArgumentError("Provide either a subtask title or generate_with_ai, not both")
    cleaned_title = (title or "").strip()
    if not generate_with_ai and not cleaned_title:
        raise InvalidArgumentError("Subtask title is required")

    async with store_guard(
        session,
        operation="create_subtask",
        owner_id=owner_id,
        entity_id=task_id,
    ):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)

        if not generate_with_ai:
            subtask = Subtask(task_id=task.id, title=cleaned_title)
            session.add(subtask)
            await session.commit()
            await session.refresh(subtask)
            logger.info(
                "task.subtask.created owner_id=%s task_id=%s subtask_id=%s",
                owner_id,
                task_id,
                subtask.id,
            )
            return [_subtask_read(subtask)]

        result = await advisor.suggest_subtasks(
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            priority=task.priority,
        )
        if result.degraded:
            logger.info(
                "task.advisor.degraded operation=suggest_subtasks reason=%s",
                result.reason,
                extra={"owner_id": str(owner_id), "task_id": str(task_id)},
            )
        if not result.value:
            raise SubtaskGenerationFailedError

        created: list[Subtask] = []
        for suggestion, stamp in zip(result.value, stamp_sequence(len(result.value)), strict=True):
            subtask = Subtask(
                task_id=task.id,
                title=suggestion.title,
                created_at=stamp,
                updated_at=stamp,
            )
            session.add(subtask)
            created.append(subtask)
        await record_audit(
            session,
            user_id=owner_id,
            task_id=task.id,
            log_type=AuditLogType.SUBTASK_GENERATION,
            suggestion=[suggestion.as_payload() for suggestion in result.value],
        )
        await session.commit()
        for subtask in created:
            await session.refresh(subtask)
        logger.info(
            "task.subtask.generated owner_id=%s task_id=%s count=%s",
            owner_id,
            task_id,
            len(created),
        )
        return [_subtask_read(subtask) for subtask in created]


async def list_subtasks(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
) -> list[SubtaskRead]:
    """Subtasks of a task, incomplete first and then by creation."""
    async with store_guard(
        session,
        operation="list_subtasks",
        owner_id=owner_id,
        entity_id=task_id,
    ):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)
        subtasks = await (
            Subtask.objects.filter_by(task_id=task.id)
            .order_by(col(Subtask.completed).asc(), col(Subtask.created_at).asc())
            .all(session)
        )
        return [_subtask_read(subtask) for subtask in subtasks]


async def update_subtask(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    subtask_id: UUID,
    updates: Mapping[str, Any],
) -> SubtaskUpdateResult:
    """Apply supplied fields; completing the last open subtask completes the task."""
    changes: dict[str, Any] = {}
    if "title" in updates:
        cleaned = (updates["title"] or "").strip()
        if not cleaned:
            raise InvalidArgumentError("Subtask title is required")
        changes["title"] = cleaned
    if "completed" in updates:
        if updates["completed"] is None:
            raise InvalidArgumentError("completed cannot be null")
        changes["completed"] = bool(updates["completed"])
    completing = changes.get("completed") is True

    async with store_guard(
        session,
        operation="update_subtask",
        owner_id=owner_id,
        entity_id=subtask_id,
    ):
        await require_owner(session, owner_id)
        # Completing locks the parent so racing completions serialize on it.
        task = await get_owned_task(
            session,
            owner_id=owner_id,
            task_id=task_id,
            for_update=completing,
        )
        subtask = await get_task_subtask(session, task=task, subtask_id=subtask_id)

        changes["updated_at"] = utcnow()
        await crud.patch(session, subtask, changes, commit=False)
        await session.flush()

        auto_completed = False
        if completing:
            auto_completed = await complete_parent_if_done(session, task)

        await session.commit()
        await session.refresh(subtask)
        await session.refresh(task)
        if auto_completed:
            logger.info(
                "task.lifecycle.auto_completed owner_id=%s task_id=%s",
                owner_id,
                task_id,
            )
        return SubtaskUpdateResult(
            subtask=_subtask_read(subtask),
            task_status=task.status,
            auto_completed=auto_completed,
        )


async def delete_subtask(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    subtask_id: UUID,
) -> None:
    """Remove a subtask; the parent's status is left as is."""
    async with store_guard(
        session,
        operation="delete_subtask",
        owner_id=owner_id,
        entity_id=subtask_id,
    ):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)
        subtask = await get_task_subtask(session, task=task, subtask_id=subtask_id)
        await crud.delete(session, subtask, commit=False)
        await session.commit()
        logger.info(
            "task.subtask.deleted owner_id=%s task_id=%s subtask_id=%s",
            owner_id,
            task_id,
            subtask_id,
        )
