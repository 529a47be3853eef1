"""Subtask endpoints nested under a task."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from task_tracker.api.deps import ADVISOR_DEP, SESSION_DEP, USER_DEP
from task_tracker.models.users import User
from task_tracker.schemas.common import OkResponse
from task_tracker.schemas.errors import ErrorResponse
from task_tracker.schemas.subtasks import (
    SubtaskCreate,
    SubtaskListResponse,
    SubtaskMutationResponse,
    SubtaskUpdate,
)
from task_tracker.services import subtasks as subtask_service

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from task_tracker.services.advisor import TaskAdvisor

router = APIRouter(prefix="/tasks/{task_id}/subtasks", tags=["subtasks"])

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    status.HTTP_403_FORBIDDEN: {
        "model": ErrorResponse,
        "description": "Task belongs to another user, or subtask belongs to another task.",
    },
    status.HTTP_404_NOT_FOUND: {
        "model": ErrorResponse,
        "description": "Task or subtask not found.",
    },
}


@router.post(
    "",
    response_model=SubtaskMutationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **ERROR_RESPONSES,
        status.HTTP_422_UNPROCESSABLE_ENTITY: {
            "model": ErrorResponse,
            "description": "Invalid input, or the advisor produced no subtasks.",
        },
    },
)
async def create_subtask(
    task_id: UUID,
    payload: SubtaskCreate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
    advisor: TaskAdvisor = ADVISOR_DEP,
) -> SubtaskMutationResponse:
    """Add a subtask by title, or generate several with the advisor."""
    created = await subtask_service.create_subtask(
        session,
        owner_id=user.id,
        task_id=task_id,
        advisor=advisor,
        title=payload.title,
        generate_with_ai=payload.generate_with_ai,
    )
    message = (
        f"{len(created)} subtasks generated successfully"
        if payload.generate_with_ai
        else "Subtask created successfully"
    )
    return SubtaskMutationResponse(message=message, subtasks=created)


@router.get("", response_model=SubtaskListResponse, responses=ERROR_RESPONSES)
async def list_subtasks(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> SubtaskListResponse:
    """List a task's subtasks, incomplete first."""
    subtasks = await subtask_service.list_subtasks(session, owner_id=user.id, task_id=task_id)
    return SubtaskListResponse(subtasks=subtasks)


@router.patch("/{subtask_id}", response_model=SubtaskMutationResponse, responses=ERROR_RESPONSES)
async def update_subtask(
    task_id: UUID,
    subtask_id: UUID,
    payload: SubtaskUpdate,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> SubtaskMutationResponse:
    """Update a subtask; completing the last open one completes the task."""
    result = await subtask_service.update_subtask(
        session,
        owner_id=user.id,
        task_id=task_id,
        subtask_id=subtask_id,
        updates=payload.model_dump(exclude_unset=True),
    )
    message = (
        "Subtask updated; all subtasks done, task completed"
        if result.auto_completed
        else "Subtask updated successfully"
    )
    return SubtaskMutationResponse(
        message=message,
        subtasks=[result.subtask],
        task_status=result.task_status,
    )


@router.delete("/{subtask_id}", response_model=OkResponse, responses=ERROR_RESPONSES)
async def delete_subtask(
    task_id: UUID,
    subtask_id: UUID,
    session: AsyncSession = SESSION_DEP,
    user: User = USER_DEP,
) -> OkResponse:
    """Delete a subtask."""
    await subtask_service.delete_subtask(
        session,
        owner_id=user.id,
        task_id=task_id,
        subtask_id=subtask_id,
    )
    return OkResponse(message="Subtask deleted successfully")
