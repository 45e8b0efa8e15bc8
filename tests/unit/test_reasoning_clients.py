"""Tests for the reasoning service clients."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import openai
import pytest

from perimeter_ai.errors import UpstreamError
from perimeter_ai.threats.reasoning import (
    ClaudeReasoningClient,
    OpenAIReasoningClient,
    create_reasoning_client,
)


def _openai_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(prompt_tokens=120, completion_tokens=45)
    return response


def _claude_response(*texts: str) -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(type="text", text=text) for text in texts]
    response.usage = MagicMock(input_tokens=100, output_tokens=30)
    return response


@pytest.fixture
def openai_sdk():
    sdk = MagicMock()
    sdk.chat.completions.create = AsyncMock(return_value=_openai_response('{"ok": true}'))
    return sdk


@pytest.fixture
def anthropic_sdk():
    sdk = MagicMock()
    sdk.messages.create = AsyncMock(return_value=_claude_response('{"ok":', " true}"))
    return sdk


class TestOpenAIReasoningClient:
    @pytest.mark.asyncio
    async def test_complete(self, openai_sdk):
        client = OpenAIReasoningClient(openai_sdk, "gpt-test")
        result = await client.complete("analyse", system_prompt="be precise", max_tokens=2000)

        assert result.content == '{"ok": true}'
        assert result.provider == "openai"
        assert result.model == "gpt-test"
        assert result.input_tokens == 120
        assert result.output_tokens == 45
        assert result.latency_ms >= 0

        kwargs = openai_sdk.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["max_completion_tokens"] == 2000
        assert kwargs["messages"] == [
            {"role": "system", "content": "be precise"},
            {"role": "user", "content": "analyse"},
        ]

    @pytest.mark.asyncio
    async def test_empty_content(self, openai_sdk):
        openai_sdk.chat.completions.create.return_value = _openai_response(None)
        result = await OpenAIReasoningClient(openai_sdk, "m").complete(
            "p", system_prompt="s", max_tokens=10
        )
        assert result.content == ""

    @pytest.mark.asyncio
    async def test_api_error_becomes_upstream_error(self, openai_sdk):
        openai_sdk.chat.completions.create.side_effect = openai.APIError(
            "invalid_api_key: sk-live-abc", request=MagicMock(), body=None
        )
        with pytest.raises(UpstreamError) as exc_info:
            await OpenAIReasoningClient(openai_sdk, "m").complete(
                "p", system_prompt="s", max_tokens=10
            )
        assert "sk-live-abc" not in exc_info.value.public_message
        assert exc_info.value.status == 500


class TestClaudeReasoningClient:
    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self, anthropic_sdk):
        client = ClaudeReasoningClient(anthropic_sdk, "claude-test")
        result = await client.complete("analyse", system_prompt="be precise", max_tokens=500)

        assert result.content == '{"ok": true}'
        assert result.provider == "claude"
        assert result.input_tokens == 100
        kwargs = anthropic_sdk.messages.create.await_args.kwargs
        assert kwargs["system"] == "be precise"
        assert kwargs["max_tokens"] == 500
        assert kwargs["messages"] == [{"role": "user", "content": "analyse"}]

    @pytest.mark.asyncio
    async def test_non_text_blocks_ignored(self, anthropic_sdk):
        response = _claude_response("{}")
        response.content.insert(0, MagicMock(type="thinking", text="secret reasoning"))
        anthropic_sdk.messages.create.return_value = response
        result = await ClaudeReasoningClient(anthropic_sdk, "m").complete(
            "p", system_prompt="s", max_tokens=10
        )
        assert result.content == "{}"

    @pytest.mark.asyncio
    async def test_api_error_becomes_upstream_error(self, anthropic_sdk):
        anthropic_sdk.messages.create.side_effect = anthropic.APIError(
            "overloaded", request=MagicMock(), body=None
        )
        with pytest.raises(UpstreamError):
            await ClaudeReasoningClient(anthropic_sdk, "m").complete(
                "p", system_prompt="s", max_tokens=10
            )


class TestCreateReasoningClient:
    def test_openai(self, mock_settings):
        with patch("perimeter_ai.threats.reasoning.openai.AsyncOpenAI") as sdk_cls:
            client = create_reasoning_client(mock_settings)
        assert isinstance(client, OpenAIReasoningClient)
        sdk_cls.assert_called_once_with(api_key="test-openai-key")

    def test_claude(self, mock_settings):
        settings = mock_settings.model_copy(update={"reasoning_provider": "claude"})
        with patch("perimeter_ai.threats.reasoning.anthropic.AsyncAnthropic") as sdk_cls:
            client = create_reasoning_client(settings)
        assert isinstance(client, ClaudeReasoningClient)
        sdk_cls.assert_called_once_with(api_key="test-anthropic-key")

    def test_missing_key(self, mock_settings):
        settings = mock_settings.model_copy(update={"openai_api_key": None})
        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            create_reasoning_client(settings)
