"""Anthropic Claude-backed advisor."""

from __future__ import annotations

import asyncio

import anthropic

from task_tracker.services.advisor.base import ADVISOR_SYSTEM_PROMPT, BaseTaskAdvisor

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicTaskAdvisor(BaseTaskAdvisor):
    """Sends each advisory prompt to the Messages API under a hard timeout."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 15.0,
        max_tokens: int = 1024,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        # Retries stay off; wait_for below is the only bound on a call.
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._max_tokens = max_tokens

    async def _complete(self, prompt: str) -> str:
        message = await asyncio.wait_for(
            self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=ADVISOR_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            ),
            timeout=self._timeout_seconds,
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )

    async def aclose(self) -> None:
        await self._client.close()
