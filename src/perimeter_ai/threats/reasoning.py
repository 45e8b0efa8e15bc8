"""Clients for the external reasoning service.

One call per analysis, no retries and no client-side timeout beyond the
SDK defaults: a slow or failed upstream fails the request. Provider error
bodies are logged here and replaced by a generic :class:`UpstreamError`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol

import anthropic
import openai

from perimeter_ai.config import Settings
from perimeter_ai.errors import UpstreamError
from perimeter_ai.logging import get_logger

log = get_logger("perimeter_ai.threats.reasoning")


@dataclass
class ReasoningResult:
    """Raw reply of the reasoning service."""

    content: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0


class ReasoningClient(Protocol):
    """Anything that can turn a prompt into a textual reply."""

    async def complete(
        self, prompt: str, *, system_prompt: str, max_tokens: int
    ) -> ReasoningResult: ...


class OpenAIReasoningClient:
    """Reasoning via the OpenAI chat completions API."""

    provider = "openai"

    def __init__(self, client: openai.AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def complete(
        self, prompt: str, *, system_prompt: str, max_tokens: int
    ) -> ReasoningResult:
        start = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                max_completion_tokens=max_tokens,
            )
        except openai.APIError as exc:
            log.error(
                "reasoning_call_failed",
                provider=self.provider,
                status=getattr(exc, "status_code", None),
                error=str(exc),
            )
            raise UpstreamError() from exc

        return ReasoningResult(
            content=response.choices[0].message.content or "",
            provider=self.provider,
            model=self._model,
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
            latency_ms=(time.monotonic() - start) * 1000,
        )


class ClaudeReasoningClient:
    """Reasoning via the Anthropic messages API."""

    provider = "claude"

    def __init__(self, client: anthropic.AsyncAnthropic, model: str) -> None:
        self._client = client
        self._model = model

    async def complete(
        self, prompt: str, *, system_prompt: str, max_tokens: int
    ) -> ReasoningResult:
        start = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            log.error(
                "reasoning_call_failed",
                provider=self.provider,
                status=getattr(exc, "status_code", None),
                error=str(exc),
            )
            raise UpstreamError() from exc

        text = "".join(
            getattr(block, "text", "") for block in response.content if block.type == "text"
        )
        return ReasoningResult(
            content=text,
            provider=self.provider,
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=(time.monotonic() - start) * 1000,
        )


def create_reasoning_client(settings: Settings) -> OpenAIReasoningClient | ClaudeReasoningClient:
    """Build the configured reasoning client.

    Raises:
        RuntimeError: The selected provider has no API key configured.
    """
    match settings.reasoning_provider:
        case "claude":
            if settings.anthropic_api_key is None:
                raise RuntimeError("ANTHROPIC_API_KEY is required for the claude provider")
            claude = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key.get_secret_value())
            return ClaudeReasoningClient(claude, settings.claude_model)
        case _:
            if settings.openai_api_key is None:
                raise RuntimeError("OPENAI_API_KEY is required for the openai provider")
            client = openai.AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())
            return OpenAIReasoningClient(client, settings.openai_model)
