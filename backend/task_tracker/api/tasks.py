"""Task CRUD, trash, workload and audit-trail endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query, status

from task_tracker.api.deps import ADVISOR_DEP, SESSION_DEP, USER_DEP
from task_tracker.models.users import User
from task_tracker.schemas.audit import AuditLogRead
from task_tracker.schemas.errors import ErrorResponse
from task_tracker.schemas.tasks import (
    DeleteTaskResponse,
    EmptyTrashResponse,
    PrioritizationRead,
    TaskCreate,
    TaskListResponse,
    TaskMutationResponse,
    TaskUpdate,
    TrashListResponse,
)
from task_tracker.schemas.workload import WorkloadReport
from task_tracker.services import tasks as task_service
from task_tracker.services import workload as workload_service
from task_tracker.services.audit import list_task_audit_logs

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from task_tracker.services.advisor import TaskAdvisor

router = APIRouter(prefix="/tasks", tags=["tasks"])

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_403_FORBIDDEN: {
        "model": ErrorResponse,
        "description": "Task belongs to another user.",
    },
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Task not found."},
}


@router.post(
    "",
    response_model=TaskMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse}},
)
async def create_task(
    payload: TaskCreate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
    advisor: TaskAdvisor = ADVISOR_DEP,
) -> TaskMutationResponse:
    """Create a task, optionally with advisor-suggested details and subtasks."""
    result = await task_service.create_task(
        session,
        owner_id=user.id,
        advisor=advisor,
        title=payload.title,
        due_date=payload.due_date,
        description=payload.description,
        priority=payload.priority,
        status=payload.status,
        tags=payload.tags,
        use_ai=payload.use_ai,
    )
    return TaskMutationResponse(
        message="Task created successfully",
        task=result.task,
        ai_suggestion=result.ai_suggestion,
    )


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    include_completed: bool = Query(default=False),
    include_prioritization: bool = Query(default=False),
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
    advisor: TaskAdvisor = ADVISOR_DEP,
) -> TaskListResponse:
    """List active tasks by due date, optionally in advisor priority order."""
    result = await task_service.list_tasks(
        session,
        owner_id=user.id,
        advisor=advisor,
        include_completed=include_completed,
        include_prioritization=include_prioritization,
    )
    prioritization = None
    if result.order is not None:
        prioritization = PrioritizationRead(order=result.order, reasoning=result.reasoning or "")
    return TaskListResponse(tasks=result.tasks, prioritization=prioritization)


@router.get("/workload", response_model=WorkloadReport)
async def get_workload(
    timeframe: str | None = Query(default=None, description="week, month or quarter"),
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
    advisor: TaskAdvisor = ADVISOR_DEP,
) -> WorkloadReport:
    """Return task statistics for the window plus the advisor narrative."""
    return await workload_service.analyze_workload(
        session,
        owner_id=user.id,
        advisor=advisor,
        timeframe=timeframe,
    )


@router.get("/trash", response_model=TrashListResponse)
async def list_trash(
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> TrashListResponse:
    """List trashed tasks, most recently trashed first."""
    return TrashListResponse(tasks=await task_service.list_trash(session, owner_id=user.id))


@router.delete("/trash", response_model=EmptyTrashResponse)
async def empty_trash(
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> EmptyTrashResponse:
    """Permanently delete every trashed task."""
    count = await task_service.empty_trash(session, owner_id=user.id)
    return EmptyTrashResponse(message=f"Permanently deleted {count} tasks from trash", count=count)


@router.patch("/{task_id}", response_model=TaskMutationResponse, responses=ERROR_RESPONSES)
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
    advisor: TaskAdvisor = ADVISOR_DEP,
) -> TaskMutationResponse:
    """Update supplied fields, optionally requesting an advisor suggestion."""
    updates = payload.model_dump(exclude_unset=True, exclude={"use_ai"})
    result = await task_service.update_task(
        session,
        owner_id=user.id,
        task_id=task_id,
        advisor=advisor,
        updates=updates,
        use_ai=payload.use_ai,
    )
    return TaskMutationResponse(
        message="Task updated successfully",
        task=result.task,
        ai_suggestion=result.ai_suggestion,
    )


@router.delete("/{task_id}", response_model=DeleteTaskResponse, responses=ERROR_RESPONSES)
async def delete_task(
    task_id: UUID,
    hard: bool = Query(default=False, description="Delete permanently instead of trashing."),
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> DeleteTaskResponse:
    """Move a task to the trash, or delete it permanently."""
    await task_service.delete_task(session, owner_id=user.id, task_id=task_id, hard=hard)
    message = "Task permanently deleted" if hard else "Task moved to trash"
    return DeleteTaskResponse(message=message, task_id=task_id, hard=hard)


@router.post(
    "/{task_id}/restore",
    response_model=TaskMutationResponse,
    responses={
        **ERROR_RESPONSES,
        status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Task is not in trash."},
    },
)
async def restore_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> TaskMutationResponse:
    """Restore a trashed task."""
    task = await task_service.restore_task(session, owner_id=user.id, task_id=task_id)
    return TaskMutationResponse(message="Task restored successfully", task=task)


@router.get("/{task_id}/audit-logs", response_model=list[AuditLogRead], responses=ERROR_RESPONSES)
async def list_audit_logs(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> list[AuditLogRead]:
    """Return the task's AI suggestion history, newest first."""
    entries = await list_task_audit_logs(session, owner_id=user.id, task_id=task_id)
    return [AuditLogRead.model_validate(e, from_attributes=True) for e in entries]
