"""Schemas for the windowed workload report."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class UpcomingTaskRead(SQLModel):
    """Not-yet-completed task due within the next seven days."""

    id: UUID
    title: str
    due_date: datetime
    priority: str
    status: str
    subtask_count: int
    completed_subtasks: int


class WorkloadAnalysisRead(SQLModel):
    """Advisor narrative merged into the report."""

    analysis: str
    recommendations: list[str] = Field(default_factory=list)
    overloaded_dates: list[str] = Field(default_factory=list)
    estimated_total_hours: float = 0
    degraded: bool = False


class WorkloadReport(SQLModel):
    """Task and subtask statistics over a due-date window."""

    timeframe: str
    window_start: datetime
    window_end: datetime
    total_tasks: int
    completed_tasks: int
    overdue_tasks: int
    completion_rate: float
    total_subtasks: int
    completed_subtasks: int
    subtask_completion_rate: float
    tasks_by_priority: dict[str, int] = Field(
        default_factory=dict,
        description=(
            "Counts for HIGH, MEDIUM and LOW plus an extra CRITICAL bucket "
            "for the fourth task priority. Every key is present, zero when empty."
        ),
    )
    tasks_by_tag: dict[str, int] = Field(default_factory=dict)
    upcoming_tasks: list[UpcomingTaskRead] = Field(default_factory=list)
    ai_analysis: WorkloadAnalysisRead
