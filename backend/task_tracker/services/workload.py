"""Windowed workload statistics with an advisor-written narrative."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlmodel import col

from task_tracker.core.logging import get_logger
from task_tracker.core.time import utcnow
from task_tracker.models.tasks import Task, TaskPriority, TaskStatus
from task_tracker.schemas.workload import UpcomingTaskRead, WorkloadAnalysisRead, WorkloadReport
from task_tracker.services.errors import store_guard
from task_tracker.services.ownership import require_owner
from task_tracker.services.tasks import load_task_reads

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from task_tracker.services.advisor import TaskAdvisor

logger = get_logger(__name__)

TIMEFRAME_DAYS = {"week": 7, "month": 30, "quarter": 90}
DEFAULT_TIMEFRAME = "default"
DEFAULT_TIMEFRAME_DAYS = 14
HORIZON_DAYS = 30
UPCOMING_DAYS = 7
PRIORITY_BUCKETS = (
    TaskPriority.HIGH.value,
    TaskPriority.MEDIUM.value,
    TaskPriority.LOW.value,
    TaskPriority.CRITICAL.value,
)


def resolve_timeframe(timeframe: str | None) -> tuple[str, int]:
    """Map a timeframe name to ``(label, days_back)``; unknown names use the default."""
    key = (timeframe or "").strip().lower()
    if key in TIMEFRAME_DAYS:
        return key, TIMEFRAME_DAYS[key]
    return DEFAULT_TIMEFRAME, DEFAULT_TIMEFRAME_DAYS


def workload_window(days_back: int, *, now: datetime) -> tuple[datetime, datetime]:
    return now - timedelta(days=days_back), now + timedelta(days=HORIZON_DAYS)


def completion_rate(done: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(done / total * 100, 2)


async def analyze_workload(
    session: AsyncSession,
    *,
    owner_id: UUID,
    advisor: TaskAdvisor,
    timeframe: str | None = None,
    now: datetime | None = None,
) -> WorkloadReport:
    """Aggregate active tasks due in the window and merge the advisor narrative."""
    label, days_back = resolve_timeframe(timeframe)
    now = now or utcnow()
    window_start, window_end = workload_window(days_back, now=now)
    upcoming_end = now + timedelta(days=UPCOMING_DAYS)

    async with store_guard(session, operation="analyze_workload", owner_id=owner_id):
        await require_owner(session, owner_id)
        tasks = await (
            Task.objects.filter_by(owner_id=owner_id)
            .filter(
                col(Task.deleted_at).is_(None),
                col(Task.due_date) >= window_start,
                col(Task.due_date) <= window_end,
            )
            .order_by(col(Task.due_date).asc())
            .all(session)
        )
        reads = await load_task_reads(session, tasks)

    completed_value = TaskStatus.COMPLETED.value
    total = len(reads)
    completed = sum(1 for task in reads if task.status == completed_value)
    overdue = sum(1 for task in reads if task.status != completed_value and task.due_date < now)
    total_subtasks = sum(len(task.subtasks) for task in reads)
    completed_subtasks = sum(
        1 for task in reads for subtask in task.subtasks if subtask.completed
    )

    by_priority: dict[str, int] = dict.fromkeys(PRIORITY_BUCKETS, 0)
    for task in reads:
        by_priority[task.priority.value] = by_priority.get(task.priority.value, 0) + 1
    by_tag = Counter(tag for task in reads for tag in task.tags)

    upcoming = [
        UpcomingTaskRead(
            id=task.id,
            title=task.title,
            due_date=task.due_date,
            priority=task.priority.value,
            status=task.status.value,
            subtask_count=len(task.subtasks),
            completed_subtasks=sum(1 for subtask in task.subtasks if subtask.completed),
        )
        for task in reads
        if task.status != completed_value and now <= task.due_date <= upcoming_end
    ]

    stats: dict[str, Any] = {
        "timeframe": label,
        "total_tasks": total,
        "completed_tasks": completed,
        "overdue_tasks": overdue,
        "completion_rate": completion_rate(completed, total),
        "total_subtasks": total_subtasks,
        "completed_subtasks": completed_subtasks,
        "subtask_completion_rate": completion_rate(completed_subtasks, total_subtasks),
        "tasks_by_priority": by_priority,
        "tasks_by_tag": dict(by_tag),
    }
    advisor_stats = {
        **stats,
        "upcoming_tasks": [
            {
                "title": item.title,
                "due_date": item.due_date.date().isoformat(),
                "priority": item.priority,
                "status": item.status,
            }
            for item in upcoming
        ],
    }
    result = await advisor.analyze_workload(advisor_stats, timeframe=label)
    if result.degraded:
        logger.info(
            "task.advisor.degraded operation=analyze_workload reason=%s",
            result.reason,
            extra={"owner_id": str(owner_id)},
        )

    logger.info(
        "task.workload.analyzed owner_id=%s timeframe=%s total=%s",
        owner_id,
        label,
        total,
    )
    return WorkloadReport(
        **stats,
        window_start=window_start,
        window_end=window_end,
        upcoming_tasks=upcoming,
        ai_analysis=WorkloadAnalysisRead(**asdict(result.value), degraded=result.degraded),
    )
