"""Advisory capability: contract, provider implementations and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from task_tracker.core.logging import get_logger
from task_tracker.services.advisor.anthropic_advisor import AnthropicTaskAdvisor
from task_tracker.services.advisor.contract import (
    AdvisorResult,
    Prioritization,
    SubtaskSuggestion,
    TaskAdvisor,
    TaskDetailsSuggestion,
    TaskSnapshot,
    TaskUpdateSuggestion,
    WorkloadAnalysis,
)
from task_tracker.services.advisor.offline import OfflineTaskAdvisor

if TYPE_CHECKING:
    from task_tracker.core.config import Settings

logger = get_logger(__name__)


def build_advisor(settings: Settings) -> TaskAdvisor:
    """Construct the process-wide advisor from settings."""
    if not settings.advisor_enabled:
        logger.info("advisor.configured provider=offline")
        return OfflineTaskAdvisor()

    logger.info("advisor.configured provider=anthropic model=%s", settings.advisor_model)
    return AnthropicTaskAdvisor(
        api_key=settings.anthropic_api_key,
        model=settings.advisor_model,
        timeout_seconds=settings.advisor_timeout_seconds,
        max_tokens=settings.advisor_max_tokens,
    )


__all__ = [
    "AdvisorResult",
    "AnthropicTaskAdvisor",
    "OfflineTaskAdvisor",
    "Prioritization",
    "SubtaskSuggestion",
    "TaskAdvisor",
    "TaskDetailsSuggestion",
    "TaskSnapshot",
    "TaskUpdateSuggestion",
    "WorkloadAnalysis",
    "build_advisor",
]
