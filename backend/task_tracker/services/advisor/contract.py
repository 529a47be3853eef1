"""Advisor port: the five advisory operations and their result shapes.

The lifecycle engine and workload aggregator depend on ``TaskAdvisor`` only,
so the Anthropic-backed advisor, the offline advisor and test fakes are
interchangeable. Every operation is total: it returns an ``AdvisorResult``
whose ``value`` is either parsed from the provider or a deterministic
fallback, and never raises.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

T = TypeVar("T")


class AdvisorDisabledError(RuntimeError):
    """Raised by advisors that have no provider configured."""


@dataclass(frozen=True)
class AdvisorResult(Generic[T]):
    """Parsed advisor output, or the operation fallback when ``degraded``."""

    value: T
    degraded: bool = False
    reason: str | None = None


@dataclass
class TaskDetailsSuggestion:
    priority: str
    description: str
    estimated_hours: float | None = None
    subtasks: list[str] = field(default_factory=list)

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TaskUpdateSuggestion:
    priority: str
    status: str
    description: str

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaskSnapshot:
    """Minimal task view handed to ``prioritize``."""

    id: str
    title: str
    due_date: datetime | None
    priority: str
    status: str


@dataclass
class Prioritization:
    order: list[str] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class SubtaskSuggestion:
    title: str
    estimated_minutes: int | None = None

    def as_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkloadAnalysis:
    analysis: str
    recommendations: list[str] = field(default_factory=list)
    overloaded_dates: list[str] = field(default_factory=list)
    estimated_total_hours: float = 0.0


class TaskAdvisor(Protocol):
    """Advisory capability consumed by the lifecycle engine and aggregator."""

    async def suggest_details(
        self,
        *,
        title: str,
        description: str | None,
        due_date: datetime,
    ) -> AdvisorResult[TaskDetailsSuggestion]: ...

    async def suggest_update(
        self,
        *,
        title: str,
        description: str | None,
        priority: str,
        status: str,
    ) -> AdvisorResult[TaskUpdateSuggestion]: ...

    async def prioritize(
        self,
        tasks: Sequence[TaskSnapshot],
    ) -> AdvisorResult[Prioritization]: ...

    async def suggest_subtasks(
        self,
        *,
        title: str,
        description: str | None,
        due_date: datetime | None,
        priority: str,
    ) -> AdvisorResult[list[SubtaskSuggestion]]: ...

    async def analyze_workload(
        self,
        stats: Mapping[str, Any],
        *,
        timeframe: str,
    ) -> AdvisorResult[WorkloadAnalysis]: ...

    async def aclose(self) -> None: ...
