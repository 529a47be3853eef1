"""Advisor used when no provider API key is configured."""

from __future__ import annotations

from task_tracker.services.advisor.base import BaseTaskAdvisor
from task_tracker.services.advisor.contract import AdvisorDisabledError


class OfflineTaskAdvisor(BaseTaskAdvisor):
    """Deterministic advisor: every call degrades with ``advisor_disabled``.

    Short-circuit answers (nothing to prioritize, nothing to analyze) are
    still returned as non-degraded, exactly as with a live provider.
    """

    async def _complete(self, prompt: str) -> str:
        raise AdvisorDisabledError("no advisor provider configured")
