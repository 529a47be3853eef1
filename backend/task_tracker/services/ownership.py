"""Owner resolution and owner-scoped task lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from task_tracker.models.subtasks import Subtask
from task_tracker.models.tasks import Task
from task_tracker.models.users import User
from task_tracker.services.errors import ForbiddenError, NotFoundError

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


async def require_owner(session: AsyncSession, owner_id: UUID) -> User:
    user = await User.objects.by_id(owner_id).first(session)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_owned_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    for_update: bool = False,
) -> Task:
    """Load a task, checking existence before ownership."""
    query = Task.objects.by_id(task_id)
    if for_update:
        query = query.for_update()
    task = await query.first(session)
    if task is None:
        raise NotFoundError("Task not found")
    if task.owner_id != owner_id:
        raise ForbiddenError("Not authorized to access this task")
    return task


async def get_task_subtask(session: AsyncSession, *, task: Task, subtask_id: UUID) -> Subtask:
    subtask = await Subtask.objects.by_id(subtask_id).first(session)
    if subtask is None:
        raise NotFoundError("Subtask not found")
    if subtask.task_id != task.id:
        raise ForbiddenError("Subtask does not belong to this task")
    return subtask
