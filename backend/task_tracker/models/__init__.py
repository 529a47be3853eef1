"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from task_tracker.models.audit_logs import AuditLog
from task_tracker.models.subtasks import Subtask
from task_tracker.models.tags import Tag, TaskTag
from task_tracker.models.tasks import Task
from task_tracker.models.users import User

__all__ = [
    "AuditLog",
    "Subtask",
    "Tag",
    "TaskTag",
    "Task",
    "User",
]
