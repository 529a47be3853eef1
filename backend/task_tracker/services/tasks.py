"""Task lifecycle: create, list, update, trash, restore and purge.

Every operation resolves the owner, checks task ownership before touching
anything, and commits once at the end. Advisor calls are best-effort: a
degraded advisor result is logged and its fallback values are used, but it
never fails the surrounding write.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlmodel import col, select

from task_tracker.core.logging import get_logger
from task_tracker.core.time import utcnow
from task_tracker.db import crud
from task_tracker.models.audit_logs import AuditLogType
from task_tracker.models.subtasks import Subtask
from task_tracker.models.tags import Tag, TaskTag
from task_tracker.models.tasks import Task, TaskPriority, TaskStatus
from task_tracker.schemas.subtasks import SubtaskRead
from task_tracker.schemas.tasks import TaskRead
from task_tracker.services.advisor import TaskSnapshot
from task_tracker.services.audit import record_audit
from task_tracker.services.errors import InvalidArgumentError, InvalidStateError, store_guard
from task_tracker.services.ownership import get_owned_task, require_owner

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from task_tracker.services.advisor import AdvisorResult, TaskAdvisor

logger = get_logger(__name__)

INITIAL_STATUSES = frozenset({TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value})
UPDATABLE_FIELDS = ("title", "description", "due_date", "priority", "status")
_REQUIRED_FIELDS = frozenset({"title", "due_date", "priority", "status"})
_PRIORITY_VALUES = frozenset(p.value for p in TaskPriority)
_STATUS_VALUES = frozenset(s.value for s in TaskStatus)


@dataclass
class TaskMutationResult:
    task: TaskRead
    ai_suggestion: dict[str, Any] | None = None


@dataclass
class TaskListResult:
    tasks: list[TaskRead] = field(default_factory=list)
    order: list[UUID] | None = None
    reasoning: str | None = None


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _required_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise InvalidArgumentError("Title is required")
    return cleaned


def _log_degraded(operation: str, result: AdvisorResult[Any], **context: object) -> None:
    if result.degraded:
        logger.info(
            "task.advisor.degraded operation=%s reason=%s",
            operation,
            result.reason,
            extra={key: str(value) for key, value in context.items()},
        )


def stamp_sequence(count: int) -> list[datetime]:
    """Strictly increasing timestamps so batch-created rows keep their order."""
    now = utcnow()
    return [now + timedelta(microseconds=index) for index in range(count)]


async def load_task_reads(session: AsyncSession, tasks: Sequence[Task]) -> list[TaskRead]:
    """Build read models with tags and subtasks in two batched queries."""
    if not tasks:
        return []
    task_ids = [task.id for task in tasks]

    tag_rows = await session.exec(
        select(col(TaskTag.task_id), col(Tag.name))
        .join(Tag, col(Tag.id) == col(TaskTag.tag_id))
        .where(col(TaskTag.task_id).in_(task_ids))
        .order_by(col(Tag.name).asc()),
    )
    tags_by_task: dict[UUID, list[str]] = defaultdict(list)
    for task_id, name in tag_rows:
        tags_by_task[task_id].append(name)

    subtasks = await (
        Subtask.objects.by_field_in("task_id", task_ids)
        .order_by(col(Subtask.created_at).asc())
        .all(session)
    )
    subtasks_by_task: dict[UUID, list[SubtaskRead]] = defaultdict(list)
    for subtask in subtasks:
        subtasks_by_task[subtask.task_id].append(
            SubtaskRead.model_validate(subtask, from_attributes=True),
        )

    return [
        TaskRead.model_validate(
            {
                **task.model_dump(),
                "trash_state": task.trash_state,
                "tags": tags_by_task.get(task.id, []),
                "subtasks": subtasks_by_task.get(task.id, []),
            },
        )
        for task in tasks
    ]


async def _read_one(session: AsyncSession, task: Task) -> TaskRead:
    await session.refresh(task)
    return (await load_task_reads(session, [task]))[0]


async def _attach_tags(session: AsyncSession, *, task_id: UUID, names: Iterable[str]) -> None:
    seen: set[str] = set()
    for raw in names:
        name = raw.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        tag, _ = await crud.get_or_create(session, Tag, commit=False, name=name)
        session.add(TaskTag(task_id=task_id, tag_id=tag.id))


async def _purge_tasks(session: AsyncSession, task_ids: Sequence[UUID]) -> int:
    await crud.delete_where(session, Subtask, col(Subtask.task_id).in_(task_ids), commit=False)
    await crud.delete_where(session, TaskTag, col(TaskTag.task_id).in_(task_ids), commit=False)
    return await crud.delete_where(session, Task, col(Task.id).in_(task_ids), commit=False)


async def create_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    advisor: TaskAdvisor,
    title: str | None,
    due_date: datetime | None,
    description: str | None = None,
    priority: TaskPriority | str | None = None,
    status: TaskStatus | str | None = None,
    tags: Iterable[str] = (),
    use_ai: bool = False,
) -> TaskMutationResult:
    """Create a task, optionally seeded with advisor-suggested details."""
    cleaned_title = _required_title(title)
    if due_date is None:
        raise InvalidArgumentError("Due date is required")
    initial_status = _enum_value(status) or TaskStatus.PENDING.value
    if initial_status not in INITIAL_STATUSES:
        raise InvalidArgumentError("New tasks must start as PENDING or IN_PROGRESS")
    initial_priority = _enum_value(priority) or TaskPriority.MEDIUM.value
    if initial_priority not in _PRIORITY_VALUES:
        raise InvalidArgumentError("Unknown priority")

    async with store_guard(session, operation="create_task", owner_id=owner_id):
        await require_owner(session, owner_id)
        now = utcnow()
        task = Task(
            owner_id=owner_id,
            title=cleaned_title,
            description=description,
            due_date=due_date,
            priority=initial_priority,
            status=initial_status,
            created_at=now,
            updated_at=now,
        )

        ai_suggestion: dict[str, Any] | None = None
        subtask_titles: list[str] = []
        if use_ai:
            result = await advisor.suggest_details(
                title=cleaned_title,
                description=description,
                due_date=due_date,
            )
            _log_degraded("suggest_details", result, owner_id=owner_id)
            task.suggested_description = result.value.description or None
            task.suggested_priority = result.value.priority
            ai_suggestion = result.value.as_payload()
            subtask_titles = result.value.subtasks

        session.add(task)
        await session.flush()
        await _attach_tags(session, task_id=task.id, names=tags)

        if subtask_titles:
            for subtask_title, stamp in zip(
                subtask_titles,
                stamp_sequence(len(subtask_titles)),
                strict=True,
            ):
                session.add(
                    Subtask(
                        task_id=task.id,
                        title=subtask_title,
                        created_at=stamp,
                        updated_at=stamp,
                    ),
                )
            await record_audit(
                session,
                user_id=owner_id,
                task_id=task.id,
                log_type=AuditLogType.TASK_CREATION,
                suggestion=ai_suggestion,
            )

        await session.commit()
        logger.info(
            "task.lifecycle.created owner_id=%s task_id=%s use_ai=%s subtasks=%s",
            owner_id,
            task.id,
            use_ai,
            len(subtask_titles),
        )
        return TaskMutationResult(task=await _read_one(session, task), ai_suggestion=ai_suggestion)


def apply_prioritization(tasks: Sequence[Task], advisor_order: Iterable[str]) -> list[Task]:
    """Reorder ``tasks`` by ``advisor_order``.

    Unknown and repeated ids are ignored; tasks the advisor left out follow
    in their original order. The result is always a permutation of ``tasks``.
    """
    by_id = {str(task.id): task for task in tasks}
    ordered: list[Task] = []
    placed: set[str] = set()
    for raw_id in advisor_order:
        key = str(raw_id).strip().lower()
        if key in by_id and key not in placed:
            ordered.append(by_id[key])
            placed.add(key)
    ordered.extend(task for task in tasks if str(task.id) not in placed)
    return ordered


async def list_tasks(
    session: AsyncSession,
    *,
    owner_id: UUID,
    advisor: TaskAdvisor,
    include_completed: bool = False,
    include_prioritization: bool = False,
) -> TaskListResult:
    """List active tasks by due date, optionally reordered by the advisor."""
    async with store_guard(session, operation="list_tasks", owner_id=owner_id):
        await require_owner(session, owner_id)
        query = Task.objects.filter_by(owner_id=owner_id).filter(col(Task.deleted_at).is_(None))
        if not include_completed:
            query = query.filter(col(Task.status) != TaskStatus.COMPLETED.value)
        tasks = await query.order_by(col(Task.due_date).asc()).all(session)

        if not include_prioritization or not tasks:
            return TaskListResult(tasks=await load_task_reads(session, tasks))

        result = await advisor.prioritize(
            [
                TaskSnapshot(
                    id=str(task.id),
                    title=task.title,
                    due_date=task.due_date,
                    priority=task.priority,
                    status=task.status,
                )
                for task in tasks
            ],
        )
        _log_degraded("prioritize", result, owner_id=owner_id)
        ordered = apply_prioritization(tasks, result.value.order)
        return TaskListResult(
            tasks=await load_task_reads(session, ordered),
            order=[task.id for task in ordered],
            reasoning=result.value.reasoning,
        )


async def update_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    advisor: TaskAdvisor,
    updates: Mapping[str, Any],
    use_ai: bool = False,
) -> TaskMutationResult:
    """Apply supplied fields, then optionally record an advisor update suggestion."""
    changes: dict[str, Any] = {}
    for name in UPDATABLE_FIELDS:
        if name not in updates:
            continue
        value = _enum_value(updates[name])
        if value is None and name in _REQUIRED_FIELDS:
            raise InvalidArgumentError(f"{name} cannot be null")
        changes[name] = value
    if "title" in changes:
        changes["title"] = _required_title(changes["title"])
    if "priority" in changes and changes["priority"] not in _PRIORITY_VALUES:
        raise InvalidArgumentError("Unknown priority")
    if "status" in changes and changes["status"] not in _STATUS_VALUES:
        raise InvalidArgumentError("Unknown status")

    async with store_guard(session, operation="update_task", owner_id=owner_id, entity_id=task_id):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)

        now = utcnow()
        if "status" in changes:
            changes["status_note"] = None
        changes["updated_at"] = now
        await crud.patch(session, task, changes, commit=False)

        ai_suggestion: dict[str, Any] | None = None
        if use_ai:
            result = await advisor.suggest_update(
                title=task.title,
                description=task.description,
                priority=task.priority,
                status=task.status,
            )
            _log_degraded("suggest_update", result, owner_id=owner_id, task_id=task_id)
            suggestion = result.value
            task.suggested_priority = suggestion.priority
            task.suggested_description = suggestion.description or None
            task.priority_note = f"AI suggested: {suggestion.priority}"
            task.status_note = f"AI suggested: {suggestion.status}"
            task.ai_updated_at = now
            session.add(task)
            ai_suggestion = suggestion.as_payload()
            await record_audit(
                session,
                user_id=owner_id,
                task_id=task.id,
                log_type=AuditLogType.TASK_UPDATE,
                suggestion=ai_suggestion,
            )

        await session.commit()
        logger.info(
            "task.lifecycle.updated owner_id=%s task_id=%s fields=%s use_ai=%s",
            owner_id,
            task_id,
            ",".join(sorted(name for name in changes if name != "updated_at")),
            use_ai,
        )
        return TaskMutationResult(task=await _read_one(session, task), ai_suggestion=ai_suggestion)


async def delete_task(
    session: AsyncSession,
    *,
    owner_id: UUID,
    task_id: UUID,
    hard: bool = False,
) -> None:
    """Move a task to the trash, or remove it with its subtasks when ``hard``."""
    async with store_guard(session, operation="delete_task", owner_id=owner_id, entity_id=task_id):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)

        if hard:
            await _purge_tasks(session, [task.id])
            await session.commit()
            logger.info("task.lifecycle.hard_deleted owner_id=%s task_id=%s", owner_id, task_id)
            return

        if task.deleted_at is not None:
            return
        now = utcnow()
        await crud.patch(
            session,
            task,
            {"deleted_at": now, "status": TaskStatus.ARCHIVED.value, "updated_at": now},
            commit=False,
        )
        await session.commit()
        logger.info("task.lifecycle.soft_deleted owner_id=%s task_id=%s", owner_id, task_id)


async def restore_task(session: AsyncSession, *, owner_id: UUID, task_id: UUID) -> TaskRead:
    """Take a task out of the trash; ARCHIVED becomes IN_PROGRESS."""
    async with store_guard(session, operation="restore_task", owner_id=owner_id, entity_id=task_id):
        await require_owner(session, owner_id)
        task = await get_owned_task(session, owner_id=owner_id, task_id=task_id)
        if task.deleted_at is None:
            raise InvalidStateError("Task is not in trash")

        changes: dict[str, Any] = {"deleted_at": None, "updated_at": utcnow()}
        if task.status == TaskStatus.ARCHIVED.value:
            changes["status"] = TaskStatus.IN_PROGRESS.value
        await crud.patch(session, task, changes, commit=False)
        await session.commit()
        logger.info(
            "task.lifecycle.restored owner_id=%s task_id=%s status=%s",
            owner_id,
            task_id,
            task.status,
        )
        return await _read_one(session, task)


async def list_trash(session: AsyncSession, *, owner_id: UUID) -> list[TaskRead]:
    async with store_guard(session, operation="list_trash", owner_id=owner_id):
        await require_owner(session, owner_id)
        tasks = await (
            Task.objects.filter_by(owner_id=owner_id)
            .filter(col(Task.deleted_at).is_not(None))
            .order_by(col(Task.deleted_at).desc())
            .all(session)
        )
        return await load_task_reads(session, tasks)


async def empty_trash(session: AsyncSession, *, owner_id: UUID) -> int:
    """Permanently remove every trashed task of the owner; returns the count."""
    async with store_guard(session, operation="empty_trash", owner_id=owner_id):
        await require_owner(session, owner_id)
        trashed_ids = list(
            await session.exec(
                select(Task.id).where(
                    col(Task.owner_id) == owner_id,
                    col(Task.deleted_at).is_not(None),
                ),
            ),
        )
        if not trashed_ids:
            return 0
        removed = await _purge_tasks(session, trashed_ids)
        await session.commit()
        logger.info("task.lifecycle.trash_emptied owner_id=%s count=%s", owner_id, removed)
        return removed
