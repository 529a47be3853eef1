"""Typed domain errors raised by the lifecycle engine and workload aggregator.

Every error maps to a stable machine-readable ``code`` and an HTTP status.
The API layer turns them into ``{"detail", "code", "request_id"}`` envelopes
(see ``task_tracker.core.error_handling``); nothing here knows about HTTP
beyond the status number.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from task_tracker.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


class TaskTrackerError(Exception):
    """Base class for expected, caller-facing failures."""

    code = "error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgumentError(TaskTrackerError):
    """Missing or malformed required input (title, due date, subtask title)."""

    code = "invalid_argument"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid argument"


class NotFoundError(TaskTrackerError):
    """Owner, task, or subtask does not resolve."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(TaskTrackerError):
    """Entity exists but is outside the caller's scope."""

    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class InvalidStateError(TaskTrackerError):
    """Operation precondition is not met (e.g. restoring an active task)."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Invalid state for this operation"


class SubtaskGenerationFailedError(TaskTrackerError):
    """The advisor produced no subtask suggestions."""

    code = "subtask_generation_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "AI was unable to generate subtasks for this task"


class InternalError(TaskTrackerError):
    """Unexpected store or infrastructure failure; details stay in the logs."""

    code = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"


@asynccontextmanager
async def store_guard(
    session: AsyncSession,
    *,
    operation: str,
    owner_id: UUID,
    entity_id: UUID | None = None,
) -> AsyncIterator[None]:
    """Roll back and re-raise store failures as ``InternalError``.

    Domain errors pass through untouched.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception(
            "task.store.failed operation=%s owner_id=%s entity_id=%s",
            operation,
            owner_id,
            entity_id,
        )
        raise InternalError from exc
