# ruff: noqa: INP001
"""Lifecycle engine tests for task create, list, update and ownership."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from fakes import ScriptedAdvisor
from task_tracker.core.time import utcnow
from task_tracker.models.audit_logs import AuditLog
from task_tracker.models.tags import Tag
from task_tracker.models.tasks import Task
from task_tracker.models.users import User
from task_tracker.services import tasks as task_service
from task_tracker.services.errors import (
    ForbiddenError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
)


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


async def _make_user(session: AsyncSession, name: str = "owner") -> User:
    user = User(clerk_user_id=f"{name}-{uuid4().hex}", name=name)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def _due(days: int = 3) -> datetime:
    return utcnow() + timedelta(days=days)


@pytest.mark.asyncio
async def test_create_task_without_ai_uses_defaults() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()

            result = await task_service.create_task(
                session,
                owner_id=owner.id,
                advisor=advisor,
                title="  Write report ",
                due_date=_due(),
            )

            assert result.task.title == "Write report"
            assert result.task.status == "PENDING"
            assert result.task.priority == "MEDIUM"
            assert result.task.suggested_priority is None
            assert result.task.trash_state == "ACTIVE"
            assert result.ai_suggestion is None
            assert advisor.prompts == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_task_requires_title_and_due_date() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()

            with pytest.raises(InvalidArgumentError):
                await task_service.create_task(
                    session, owner_id=owner.id, advisor=advisor, title="   ", due_date=_due()
                )
            with pytest.raises(InvalidArgumentError):
                await task_service.create_task(
                    session, owner_id=owner.id, advisor=advisor, title="t", due_date=None
                )
            with pytest.raises(InvalidArgumentError):
                await task_service.create_task(
                    session,
                    owner_id=owner.id,
                    advisor=advisor,
                    title="t",
                    due_date=_due(),
                    status="COMPLETED",
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_task_for_unknown_owner_is_not_found() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            with pytest.raises(NotFoundError):
                await task_service.create_task(
                    session,
                    owner_id=uuid4(),
                    advisor=ScriptedAdvisor(),
                    title="t",
                    due_date=_due(),
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_task_with_ai_keeps_caller_fields_and_audits_subtasks() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor(
                {
                    "priority": "HIGH",
                    "description": "Gather data, then write.",
                    "estimated_hours": 3,
                    "subtasks": ["Gather data", {"title": "Write draft"}, "Proofread"],
                },
            )

            result = await task_service.create_task(
                session,
                owner_id=owner.id,
                advisor=advisor,
                title="Write report",
                description="Quarterly numbers",
                priority="LOW",
                due_date=_due(),
                tags=["work", "q4", "work", " "],
                use_ai=True,
            )

            task = result.task
            assert task.priority == "LOW"
            assert task.description == "Quarterly numbers"
            assert task.suggested_priority == "HIGH"
            assert task.suggested_description == "Gather data, then write."
            assert task.tags == ["q4", "work"]
            assert [s.title for s in task.subtasks] == ["Gather data", "Write draft", "Proofread"]
            assert result.ai_suggestion is not None
            assert result.ai_suggestion["estimated_hours"] == 3.0

            logs = await AuditLog.objects.filter_by(task_id=task.id).all(session)
            assert len(logs) == 1
            assert logs[0].type == "TASK_CREATION"
            assert logs[0].suggestion["subtasks"] == ["Gather data", "Write draft", "Proofread"]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_task_with_degraded_ai_still_succeeds_without_audit() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor(RuntimeError("provider down"))

            result = await task_service.create_task(
                session,
                owner_id=owner.id,
                advisor=advisor,
                title="t",
                description="d",
                due_date=_due(),
                use_ai=True,
            )

            assert result.task.suggested_priority == "MEDIUM"
            assert result.task.suggested_description == "d"
            assert result.task.subtasks == []
            assert await AuditLog.objects.filter_by(task_id=result.task.id).all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_tags_are_shared_between_tasks() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()
            for title in ("a", "b"):
                await task_service.create_task(
                    session,
                    owner_id=owner.id,
                    advisor=advisor,
                    title=title,
                    due_date=_due(),
                    tags=["home", "Home"],
                )

            names = sorted(tag.name for tag in await Tag.objects.all().all(session))
            assert names == ["Home", "home"]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_list_tasks_orders_by_due_date_and_hides_completed_and_trashed() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            other = await _make_user(session, "other")
            advisor = ScriptedAdvisor()

            later = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="later", due_date=_due(5)
            )
            sooner = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="sooner", due_date=_due(1)
            )
            done = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="done", due_date=_due(2)
            )
            trashed = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="trashed", due_date=_due(2)
            )
            await task_service.create_task(
                session, owner_id=other.id, advisor=advisor, title="not mine", due_date=_due(1)
            )
            await task_service.update_task(
                session,
                owner_id=owner.id,
                task_id=done.task.id,
                advisor=advisor,
                updates={"status": "COMPLETED"},
            )
            await task_service.delete_task(session, owner_id=owner.id, task_id=trashed.task.id)

            active = await task_service.list_tasks(session, owner_id=owner.id, advisor=advisor)
            assert [t.title for t in active.tasks] == ["sooner", "later"]
            assert active.order is None

            everything = await task_service.list_tasks(
                session, owner_id=owner.id, advisor=advisor, include_completed=True
            )
            assert [t.id for t in everything.tasks] == [sooner.task.id, done.task.id, later.task.id]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_task_checks_existence_then_ownership() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            intruder = await _make_user(session, "intruder")
            advisor = ScriptedAdvisor()
            created = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="mine", due_date=_due()
            )

            with pytest.raises(NotFoundError):
                await task_service.update_task(
                    session,
                    owner_id=owner.id,
                    task_id=uuid4(),
                    advisor=advisor,
                    updates={"title": "x"},
                )
            with pytest.raises(ForbiddenError):
                await task_service.update_task(
                    session,
                    owner_id=intruder.id,
                    task_id=created.task.id,
                    advisor=advisor,
                    updates={"title": "hijacked"},
                )

            task = await Task.objects.by_id(created.task.id).first(session)
            assert task is not None
            assert task.title == "mine"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_task_applies_only_supplied_fields() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()
            created = await task_service.create_task(
                session,
                owner_id=owner.id,
                advisor=advisor,
                title="t",
                description="keep",
                due_date=_due(),
            )

            result = await task_service.update_task(
                session,
                owner_id=owner.id,
                task_id=created.task.id,
                advisor=advisor,
                updates={"priority": "CRITICAL", "status": "IN_PROGRESS"},
            )

            assert result.task.priority == "CRITICAL"
            assert result.task.status == "IN_PROGRESS"
            assert result.task.description == "keep"
            assert result.task.title == "t"
            assert result.task.status_note is None

            with pytest.raises(InvalidArgumentError):
                await task_service.update_task(
                    session,
                    owner_id=owner.id,
                    task_id=created.task.id,
                    advisor=advisor,
                    updates={"title": ""},
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_task_with_ai_seeds_advisor_with_merged_values() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()
            created = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="old title", due_date=_due()
            )
            advisor.queue({"priority": "HIGH", "status": "IN_PROGRESS", "description": "Plan it"})

            result = await task_service.update_task(
                session,
                owner_id=owner.id,
                task_id=created.task.id,
                advisor=advisor,
                updates={"title": "new title"},
                use_ai=True,
            )

            assert "new title" in advisor.prompts[-1]
            assert result.task.title == "new title"
            assert result.task.priority == "MEDIUM"
            assert result.task.status == "PENDING"
            assert result.task.suggested_priority == "HIGH"
            assert result.task.suggested_description == "Plan it"
            assert result.task.priority_note == "AI suggested: HIGH"
            assert result.task.status_note == "AI suggested: IN_PROGRESS"
            assert result.task.ai_updated_at is not None

            logs = await AuditLog.objects.filter_by(task_id=created.task.id).all(session)
            assert [log.type for log in logs] == ["TASK_UPDATE"]
            assert logs[0].suggestion == {
                "priority": "HIGH",
                "status": "IN_PROGRESS",
                "description": "Plan it",
            }
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_user_status_change_clears_system_status_note() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            advisor = ScriptedAdvisor()
            created = await task_service.create_task(
                session, owner_id=owner.id, advisor=advisor, title="t", due_date=_due()
            )
            task = await Task.objects.by_id(created.task.id).first(session)
            assert task is not None
            task.status_note = "Automatically completed (all subtasks done)"
            session.add(task)
            await session.commit()

            result = await task_service.update_task(
                session,
                owner_id=owner.id,
                task_id=created.task.id,
                advisor=advisor,
                updates={"status": "PENDING"},
            )

            assert result.task.status_note is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_failed_final_write_reports_failure_and_keeps_nothing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            owner = await _make_user(session)
            owner_id = owner.id
            advisor = ScriptedAdvisor(
                {"priority": "HIGH", "description": "Draft it", "subtasks": ["Outline"]},
            )

            async def failing_commit() -> None:
                raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

            monkeypatch.setattr(session, "commit", failing_commit)
            with pytest.raises(InternalError):
                await task_service.create_task(
                    session,
                    owner_id=owner_id,
                    advisor=advisor,
                    title="Write report",
                    due_date=_due(),
                    tags=["work"],
                    use_ai=True,
                )
            monkeypatch.undo()

            assert advisor.prompts
            assert await Task.objects.filter_by(owner_id=owner_id).all(session) == []
            assert await AuditLog.objects.all().all(session) == []
            assert await Tag.objects.all().all(session) == []
    finally:
        await engine.dispose()
