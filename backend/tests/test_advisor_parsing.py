# ruff: noqa: INP001
"""Advisor response parsing, per-field backfill and whole-operation fallbacks."""

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from fakes import ScriptedAdvisor
from task_tracker.core.config import Settings
from task_tracker.services.advisor import OfflineTaskAdvisor, TaskSnapshot, build_advisor
from task_tracker.services.advisor.anthropic_advisor import AnthropicTaskAdvisor
from task_tracker.services.advisor.parsing import extract_json_object, find_balanced_object

DUE = datetime(2026, 10, 23, 17, 0, 0)


def test_find_balanced_object_ignores_braces_inside_strings() -> None:
    text = 'prefix {"a": "has } and { inside", "b": {"c": "\\"}"}} trailing }'
    found = find_balanced_object(text)
    assert found == '{"a": "has } and { inside", "b": {"c": "\\"}"}}'


def test_find_balanced_object_returns_none_when_unclosed() -> None:
    assert find_balanced_object('{"a": 1') is None
    assert find_balanced_object("no json here") is None


def test_find_balanced_object_uses_closed_object_inside_unclosed_one() -> None:
    assert find_balanced_object('{"broken": {"priority": "HIGH"}') == '{"priority": "HIGH"}'
    assert find_balanced_object("{ {a} {b}") == "{a}"


def test_find_balanced_object_treats_quotes_outside_objects_as_prose() -> None:
    assert find_balanced_object('The shelf is 5" deep: {"a": 1}') == '{"a": 1}'


def test_find_balanced_object_handles_many_unclosed_braces() -> None:
    text = "{" * 20000 + '{"a": 1}'
    assert find_balanced_object(text) == '{"a": 1}'


def test_extract_json_object_takes_first_object_only() -> None:
    text = 'First {"priority": "HIGH"} then {"priority": "LOW"}'
    assert extract_json_object(text) == {"priority": "HIGH"}


def test_extract_json_object_rejects_invalid_json() -> None:
    assert extract_json_object("{not: valid}") is None
    assert extract_json_object("") is None
    assert extract_json_object(None) is None


@pytest.mark.asyncio
async def test_suggest_details_parses_and_normalizes_fields() -> None:
    advisor = ScriptedAdvisor(
        {
            "priority": "high",
            "description": "  Outline, draft, review.  ",
            "estimatedTime": "4.5",
            "subtasks": ["Outline", {"title": "Draft"}, "  ", {"nope": 1}, 42],
        },
    )
    result = await advisor.suggest_details(title="Write report", description=None, due_date=DUE)

    assert result.degraded is False
    assert result.value.priority == "HIGH"
    assert result.value.description == "Outline, draft, review."
    assert result.value.estimated_hours == 4.5
    assert result.value.subtasks == ["Outline", "Draft"]
    assert "Write report" in advisor.prompts[0]


@pytest.mark.asyncio
async def test_suggest_details_backfills_bad_fields_individually() -> None:
    advisor = ScriptedAdvisor({"priority": "URGENT!!", "description": 12, "subtasks": "x"})
    result = await advisor.suggest_details(title="t", description="mine", due_date=DUE)

    assert result.degraded is False
    assert result.value.priority == "MEDIUM"
    assert result.value.description == "mine"
    assert result.value.estimated_hours is None
    assert result.value.subtasks == []


@pytest.mark.asyncio
async def test_suggest_details_unparsable_response_falls_back() -> None:
    advisor = ScriptedAdvisor("I think this is a high priority task.")
    result = await advisor.suggest_details(title="t", description="keep me", due_date=DUE)

    assert result.degraded is True
    assert result.reason == "unparsable_response"
    assert result.value.priority == "MEDIUM"
    assert result.value.description == "keep me"
    assert result.value.subtasks == []


@pytest.mark.asyncio
async def test_suggest_update_echoes_inputs_on_provider_error() -> None:
    advisor = ScriptedAdvisor(ConnectionError("down"))
    result = await advisor.suggest_update(
        title="t",
        description=None,
        priority="LOW",
        status="IN_PROGRESS",
    )

    assert result.degraded is True
    assert result.reason == "provider_error"
    assert result.value.priority == "LOW"
    assert result.value.status == "IN_PROGRESS"
    assert result.value.description == ""


@pytest.mark.asyncio
async def test_suggest_update_keeps_inputs_for_unknown_enum_values() -> None:
    advisor = ScriptedAdvisor({"priority": "critical", "status": "DONE", "description": "Better"})
    result = await advisor.suggest_update(
        title="t",
        description="old",
        priority="LOW",
        status="PENDING",
    )

    assert result.degraded is False
    assert result.value.priority == "CRITICAL"
    assert result.value.status == "PENDING"
    assert result.value.description == "Better"


@pytest.mark.asyncio
async def test_prioritize_empty_input_short_circuits_without_calling_provider() -> None:
    advisor = ScriptedAdvisor()
    result = await advisor.prioritize([])

    assert result.degraded is False
    assert result.value.order == []
    assert result.value.reasoning == "No tasks to prioritize"
    assert advisor.prompts == []


@pytest.mark.asyncio
async def test_prioritize_failure_returns_empty_order() -> None:
    advisor = ScriptedAdvisor(asyncio.TimeoutError())
    snapshot = TaskSnapshot(id="a", title="A", due_date=DUE, priority="LOW", status="PENDING")
    result = await advisor.prioritize([snapshot])

    assert result.degraded is True
    assert result.reason == "timeout"
    assert result.value.order == []
    assert result.value.reasoning == "Error occurred during prioritization"


@pytest.mark.asyncio
async def test_prioritize_accepts_camel_case_key_and_default_reasoning() -> None:
    advisor = ScriptedAdvisor({"prioritizedTaskIds": ["b", 7, "a"]})
    snapshots = [
        TaskSnapshot(id="a", title="A", due_date=DUE, priority="LOW", status="PENDING"),
        TaskSnapshot(id="b", title="B", due_date=None, priority="HIGH", status="PENDING"),
    ]
    result = await advisor.prioritize(snapshots)

    assert result.value.order == ["b", "a"]
    assert result.value.reasoning == "Tasks prioritized based on deadlines and importance"
    assert "No due date" in advisor.prompts[0]


@pytest.mark.asyncio
async def test_suggest_subtasks_reads_titles_and_minutes() -> None:
    advisor = ScriptedAdvisor(
        {"subtasks": [{"title": "Research", "estimated_minutes": 30}, "Write", {"title": ""}]},
    )
    result = await advisor.suggest_subtasks(
        title="t",
        description=None,
        due_date=DUE,
        priority="MEDIUM",
    )

    assert result.degraded is False
    assert [(s.title, s.estimated_minutes) for s in result.value] == [
        ("Research", 30),
        ("Write", None),
    ]


@pytest.mark.asyncio
async def test_analyze_workload_short_circuits_on_zero_tasks() -> None:
    advisor = ScriptedAdvisor()
    result = await advisor.analyze_workload({"total_tasks": 0}, timeframe="week")

    assert result.degraded is False
    assert result.value.analysis == "No tasks to analyze"
    assert advisor.prompts == []


@pytest.mark.asyncio
async def test_analyze_workload_fallback_and_parsed_paths() -> None:
    advisor = ScriptedAdvisor(
        "garbage",
        {
            "analysis": "Busy week",
            "recommendations": ["Delegate"],
            "overloaded_days": ["2026-10-21"],
            "estimated_total_hours": 12,
        },
    )
    failed = await advisor.analyze_workload({"total_tasks": 3}, timeframe="week")
    parsed = await advisor.analyze_workload({"total_tasks": 3}, timeframe="week")

    assert failed.degraded is True
    assert failed.value.analysis == "Error analyzing workload"
    assert failed.value.recommendations == []
    assert failed.value.estimated_total_hours == 0.0
    assert parsed.value.analysis == "Busy week"
    assert parsed.value.overloaded_dates == ["2026-10-21"]
    assert parsed.value.estimated_total_hours == 12.0


@pytest.mark.asyncio
async def test_offline_advisor_degrades_every_call() -> None:
    advisor = OfflineTaskAdvisor()
    details = await advisor.suggest_details(title="t", description=None, due_date=DUE)
    subtasks = await advisor.suggest_subtasks(
        title="t",
        description=None,
        due_date=DUE,
        priority="LOW",
    )

    assert details.degraded is True
    assert details.reason == "advisor_disabled"
    assert subtasks.value == []
    await advisor.aclose()


class _SlowMessages:
    async def create(self, **kwargs: object) -> object:
        await asyncio.sleep(5)
        raise AssertionError("unreachable")


class _SlowClient:
    messages = _SlowMessages()

    async def close(self) -> None:
        return None


@pytest.mark.asyncio
async def test_anthropic_advisor_times_out_to_fallback() -> None:
    advisor = AnthropicTaskAdvisor(
        api_key="unused",
        timeout_seconds=0.01,
        client=_SlowClient(),  # type: ignore[arg-type]
    )
    result = await advisor.suggest_update(
        title="t",
        description="d",
        priority="HIGH",
        status="PENDING",
    )

    assert result.degraded is True
    assert result.reason == "timeout"
    assert result.value.priority == "HIGH"


def test_build_advisor_picks_offline_without_api_key() -> None:
    settings = Settings(
        auth_mode="local",
        local_auth_token="x" * 60,
        anthropic_api_key="",
    )
    assert isinstance(build_advisor(settings), OfflineTaskAdvisor)
