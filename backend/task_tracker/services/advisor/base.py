"""Shared prompt building, response parsing and fallbacks for advisors.

Concrete advisors only implement ``_complete``: send one prompt, return the
raw model text. Everything else (per-field validation, whole-operation
fallbacks, degradation logging) lives here so that every provider honours
the same contract.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from task_tracker.core.logging import get_logger
from task_tracker.models.tasks import TaskPriority, TaskStatus
from task_tracker.services.advisor.contract import (
    AdvisorDisabledError,
    AdvisorResult,
    Prioritization,
    SubtaskSuggestion,
    TaskDetailsSuggestion,
    TaskUpdateSuggestion,
    WorkloadAnalysis,
)
from task_tracker.services.advisor.parsing import (
    coerce_choice,
    coerce_number,
    coerce_text,
    coerce_text_list,
    coerce_titles,
    extract_json_object,
    first_present,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from task_tracker.services.advisor.contract import TaskSnapshot

logger = get_logger(__name__)

ADVISOR_SYSTEM_PROMPT = """You are a task management assistant that helps people plan, prioritize and break down their work.

Always answer with a single JSON object that matches the structure requested in the user message. Do not wrap it in prose."""

PRIORITIES = frozenset(p.value for p in TaskPriority)
STATUSES = frozenset(s.value for s in TaskStatus)

NO_TASKS_TO_PRIORITIZE = "No tasks to prioritize"
PRIORITIZATION_FAILED = "Error occurred during prioritization"
PRIORITIZATION_DEFAULT_REASONING = "Tasks prioritized based on deadlines and importance"
NO_TASKS_TO_ANALYZE = "No tasks to analyze"
WORKLOAD_ANALYSIS_FAILED = "Error analyzing workload"
WORKLOAD_ANALYSIS_DEFAULT = "Workload analysis completed"


def _day(value: datetime | None) -> str:
    return value.date().isoformat() if value is not None else "No due date"


class BaseTaskAdvisor:
    """Template for ``TaskAdvisor`` implementations."""

    async def _complete(self, prompt: str) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None

    async def _ask(self, operation: str, prompt: str) -> tuple[dict[str, Any] | None, str | None]:
        """Run one completion; returns ``(payload, None)`` or ``(None, reason)``."""
        try:
            raw = await self._complete(prompt)
        except AdvisorDisabledError:
            logger.debug("advisor.call.skipped operation=%s reason=advisor_disabled", operation)
            return None, "advisor_disabled"
        except TimeoutError:
            logger.warning("advisor.call.timeout operation=%s", operation)
            return None, "timeout"
        except Exception:
            logger.warning("advisor.call.failed operation=%s", operation, exc_info=True)
            return None, "provider_error"
        payload = extract_json_object(raw)
        if payload is None:
            logger.warning(
                "advisor.response.unparsable operation=%s",
                operation,
                extra={"response_preview": (raw or "")[:200]},
            )
            return None, "unparsable_response"
        return payload, None

    async def suggest_details(
        self,
        *,
        title: str,
        description: str | None,
        due_date: datetime,
    ) -> AdvisorResult[TaskDetailsSuggestion]:
        prompt = f"""Based on the following task, suggest details.

Title: {title}
Description: {description or "No description provided"}
Due Date: {due_date.isoformat()}

Return a JSON object with this structure:
{{
  "priority": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
  "description": "concise enhanced description with key action items (max 300 words)",
  "estimated_hours": <number of hours to complete>,
  "subtasks": ["3-5 key subtasks to complete this task"]
}}"""
        fallback_description = description or ""
        payload, reason = await self._ask("suggest_details", prompt)
        if payload is None:
            return AdvisorResult(
                TaskDetailsSuggestion(
                    priority=TaskPriority.MEDIUM.value,
                    description=fallback_description,
                ),
                degraded=True,
                reason=reason,
            )
        return AdvisorResult(
            TaskDetailsSuggestion(
                priority=coerce_choice(
                    payload.get("priority"), PRIORITIES, TaskPriority.MEDIUM.value
                ),
                description=coerce_text(payload.get("description"), fallback_description),
                estimated_hours=coerce_number(
                    first_present(payload, "estimated_hours", "estimatedTime"),
                ),
                subtasks=[title for title, _ in coerce_titles(payload.get("subtasks"))],
            ),
        )

    async def suggest_update(
        self,
        *,
        title: str,
        description: str | None,
        priority: str,
        status: str,
    ) -> AdvisorResult[TaskUpdateSuggestion]:
        prompt = f"""Suggest improvements for the following task.

Title: {title}
Description: {description or "N/A"}
Current Priority: {priority}
Current Status: {status}

Return a JSON object with this structure:
{{
  "priority": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
  "status": "PENDING" | "IN_PROGRESS" | "COMPLETED" | "ARCHIVED",
  "description": "enhanced description with clear action items"
}}"""
        echoed = TaskUpdateSuggestion(
            priority=priority,
            status=status,
            description=description or "",
        )
        payload, reason = await self._ask("suggest_update", prompt)
        if payload is None:
            return AdvisorResult(echoed, degraded=True, reason=reason)
        return AdvisorResult(
            TaskUpdateSuggestion(
                priority=coerce_choice(payload.get("priority"), PRIORITIES, echoed.priority),
                status=coerce_choice(payload.get("status"), STATUSES, echoed.status),
                description=coerce_text(payload.get("description"), echoed.description),
            ),
        )

    async def prioritize(self, tasks: Sequence[TaskSnapshot]) -> AdvisorResult[Prioritization]:
        if not tasks:
            return AdvisorResult(Prioritization(order=[], reasoning=NO_TASKS_TO_PRIORITIZE))

        lines = "\n".join(
            f"{index}. [{task.id}] {task.title} - Due: {_day(task.due_date)}"
            f" - Priority: {task.priority} - Status: {task.status}"
            for index, task in enumerate(tasks, start=1)
        )
        example_ids = json.dumps([task.id for task in tasks])
        prompt = f"""Prioritize the following tasks by importance, deadline and urgency.

{lines}

Return a JSON object listing every task id, most important first:
{{
  "prioritized_task_ids": {example_ids},
  "reasoning": "brief explanation of the prioritization"
}}"""
        payload, reason = await self._ask("prioritize", prompt)
        if payload is None:
            return AdvisorResult(
                Prioritization(order=[], reasoning=PRIORITIZATION_FAILED),
                degraded=True,
                reason=reason,
            )
        raw_order = first_present(payload, "prioritized_task_ids", "prioritizedTaskIds")
        return AdvisorResult(
            Prioritization(
                order=coerce_text_list(raw_order),
                reasoning=coerce_text(payload.get("reasoning"), PRIORITIZATION_DEFAULT_REASONING),
            ),
        )

    async def suggest_subtasks(
        self,
        *,
        title: str,
        description: str | None,
        due_date: datetime | None,
        priority: str,
    ) -> AdvisorResult[list[SubtaskSuggestion]]:
        prompt = f"""Break the following task into 3-5 specific, actionable subtasks.

Title: {title}
Description: {description or "No description provided"}
Due Date: {_day(due_date)}
Priority: {priority}

Return a JSON object with this structure:
{{
  "subtasks": [
    {{"title": "First subtask", "estimated_minutes": 30}},
    {{"title": "Second subtask", "estimated_minutes": 45}}
  ]
}}"""
        payload, reason = await self._ask("suggest_subtasks", prompt)
        if payload is None:
            return AdvisorResult([], degraded=True, reason=reason)
        return AdvisorResult(
            [
                SubtaskSuggestion(title=title, estimated_minutes=minutes)
                for title, minutes in coerce_titles(payload.get("subtasks"))
            ],
        )

    async def analyze_workload(
        self,
        stats: Mapping[str, Any],
        *,
        timeframe: str,
    ) -> AdvisorResult[WorkloadAnalysis]:
        if not stats.get("total_tasks"):
            return AdvisorResult(WorkloadAnalysis(analysis=NO_TASKS_TO_ANALYZE))

        prompt = f"""Analyze this workload summary for the {timeframe} timeframe.

{json.dumps(stats, indent=2, default=str)}

Return a JSON object with this structure:
{{
  "analysis": "brief workload analysis",
  "recommendations": ["1-3 specific recommendations"],
  "overloaded_dates": ["YYYY-MM-DD dates with too many high-priority tasks"],
  "estimated_total_hours": <approximate total hours of work>
}}"""
        payload, reason = await self._ask("analyze_workload", prompt)
        if payload is None:
            return AdvisorResult(
                WorkloadAnalysis(analysis=WORKLOAD_ANALYSIS_FAILED),
                degraded=True,
                reason=reason,
            )
        return AdvisorResult(
            WorkloadAnalysis(
                analysis=coerce_text(payload.get("analysis"), WORKLOAD_ANALYSIS_DEFAULT),
                recommendations=coerce_text_list(payload.get("recommendations")),
                overloaded_dates=coerce_text_list(
                    first_present(payload, "overloaded_dates", "overloaded_days"),
                ),
                estimated_total_hours=coerce_number(payload.get("estimated_total_hours")) or 0.0,
            ),
        )
