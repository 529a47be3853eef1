"""Public schema exports shared across API route modules."""

from task_tracker.schemas.audit import AuditLogRead
from task_tracker.schemas.common import OkResponse
from task_tracker.schemas.errors import ErrorResponse
from task_tracker.schemas.health import HealthStatusResponse
from task_tracker.schemas.subtasks import (
    SubtaskCreate,
    SubtaskListResponse,
    SubtaskMutationResponse,
    SubtaskRead,
    SubtaskUpdate,
)
from task_tracker.schemas.tasks import (
    DeleteTaskResponse,
    EmptyTrashResponse,
    PrioritizationRead,
    TaskCreate,
    TaskListResponse,
    TaskMutationResponse,
    TaskRead,
    TaskUpdate,
    TrashListResponse,
)
from task_tracker.schemas.users import UserRead
from task_tracker.schemas.workload import WorkloadReport

__all__ = [
    "AuditLogRead",
    "DeleteTaskResponse",
    "EmptyTrashResponse",
    "ErrorResponse",
    "HealthStatusResponse",
    "OkResponse",
    "PrioritizationRead",
    "SubtaskCreate",
    "SubtaskListResponse",
    "SubtaskMutationResponse",
    "SubtaskRead",
    "SubtaskUpdate",
    "TaskCreate",
    "TaskListResponse",
    "TaskMutationResponse",
    "TaskRead",
    "TaskUpdate",
    "TrashListResponse",
    "UserRead",
    "WorkloadReport",
]
