"""Tests for the LLM client and LLMConfig."""

from __future__ import annotations

from unittest.mock import MagicMock

import anthropic
import httpx
import openai
import pytest

from recollect.build.llm_client import LLMClient, ModelTier
from recollect.core.config import LLMConfig
from recollect.core.errors import ResourceExhaustedError, SummarizationError
from recollect.core.logging import RecollectLogger


def _anthropic_response(text="<summary>ok</summary>", stop_reason="end_turn", blocks=None):
    response = MagicMock()
    response.content = blocks if blocks is not None else [MagicMock(text=text)]
    response.stop_reason = stop_reason
    response.model = "claude-test"
    response.usage.input_tokens = 100
    response.usage.output_tokens = 20
    return response


def _status_error(cls, status: int, message: str):
    request = httpx.Request("POST", "https://api.example.com/v1/messages")
    return cls(message, response=httpx.Response(status, request=request), body=None)


@pytest.fixture
def anthropic_client():
    client = LLMClient(LLMConfig(api_key="test-key"), retry_delay=0)
    client._client = MagicMock()
    return client


class TestLLMConfig:
    def test_defaults(self):
        config = LLMConfig()
        assert config.provider == "anthropic"
        assert config.max_tokens == 4096
        assert config.model != config.escalation_model

    def test_env_overrides_defaults(self, monkeypatch):
        monkeypatch.setenv("RECOLLECT_LLM_MODEL", "env-model")
        monkeypatch.setenv("RECOLLECT_LLM_ESCALATION_MODEL", "env-big-model")
        config = LLMConfig.from_dict({})
        assert config.model == "env-model"
        assert config.escalation_model == "env-big-model"

    def test_explicit_beats_env(self, monkeypatch):
        monkeypatch.setenv("RECOLLECT_LLM_MODEL", "env-model")
        assert LLMConfig.from_dict({"model": "explicit"}).model == "explicit"

    def test_resolve_api_key_per_provider(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
        monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
        assert LLMConfig().resolve_api_key() == "ant-key"
        assert LLMConfig(provider="openai").resolve_api_key() == "oai-key"
        assert LLMConfig(api_key="mine").resolve_api_key() == "mine"


class TestAnthropicCompletion:
    def test_returns_text_and_usage(self, anthropic_client):
        anthropic_client._client.messages.create.return_value = _anthropic_response()
        response = anthropic_client.complete("summarize this")
        assert response.content == "<summary>ok</summary>"
        assert response.total_tokens == 120

        kwargs = anthropic_client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == anthropic_client.config.model
        assert kwargs["max_tokens"] == 4096
        assert kwargs["messages"] == [{"role": "user", "content": "summarize this"}]
        assert "indexed directly" in kwargs["system"]

    def test_capable_tier_uses_escalation_model(self, anthropic_client):
        anthropic_client._client.messages.create.return_value = _anthropic_response()
        anthropic_client.complete("x", tier=ModelTier.CAPABLE)
        kwargs = anthropic_client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == anthropic_client.config.escalation_model

    def test_skips_blocks_without_text(self, anthropic_client):
        thinking = MagicMock(spec=["type", "thinking"])
        blocks = [thinking, MagicMock(text="answer")]
        anthropic_client._client.messages.create.return_value = _anthropic_response(blocks=blocks)
        assert anthropic_client.complete("x").content == "answer"

    def test_budget_error_raises_resource_exhausted(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = _status_error(
            anthropic.BadRequestError, 400,
            "max_tokens must be greater than thinking.budget_tokens",
        )
        with pytest.raises(ResourceExhaustedError):
            anthropic_client.complete("x")

    def test_empty_max_tokens_response_is_exhaustion(self, anthropic_client):
        anthropic_client._client.messages.create.return_value = _anthropic_response(
            blocks=[], stop_reason="max_tokens",
        )
        with pytest.raises(ResourceExhaustedError):
            anthropic_client.complete("x")

    def test_other_api_error_is_summarization_error(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = _status_error(
            anthropic.BadRequestError, 400, "prompt is malformed",
        )
        with pytest.raises(SummarizationError) as excinfo:
            anthropic_client.complete("x")
        assert not isinstance(excinfo.value, ResourceExhaustedError)

    def test_transient_error_retried_once(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = [
            _status_error(anthropic.RateLimitError, 429, "slow down"),
            _anthropic_response(text="second try"),
        ]
        assert anthropic_client.complete("x").content == "second try"
        assert anthropic_client._client.messages.create.call_count == 2

    def test_transient_error_twice_fails(self, anthropic_client):
        anthropic_client._client.messages.create.side_effect = _status_error(
            anthropic.RateLimitError, 429, "slow down",
        )
        with pytest.raises(SummarizationError):
            anthropic_client.complete("x")
        assert anthropic_client._client.messages.create.call_count == 2

    def test_run_logger_counts_calls(self):
        run_logger = RecollectLogger()
        client = LLMClient(LLMConfig(api_key="k"), run_logger=run_logger)
        client._client = MagicMock()
        client._client.messages.create.return_value = _anthropic_response()
        client.complete("x")
        assert run_logger.run_log.llm_calls == 1
        assert run_logger.run_log.tokens_used == 120


class TestOpenAICompletion:
    @pytest.fixture
    def openai_client(self):
        client = LLMClient(LLMConfig(provider="openai", api_key="k", model="gpt-test"), retry_delay=0)
        client._client = MagicMock()
        return client

    def _response(self, content, finish_reason="stop"):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.choices[0].finish_reason = finish_reason
        response.model = "gpt-test"
        response.usage.prompt_tokens = 7
        response.usage.completion_tokens = 3
        response.usage.total_tokens = 10
        return response

    def test_returns_content(self, openai_client):
        openai_client._client.chat.completions.create.return_value = self._response("hello")
        response = openai_client.complete("x")
        assert response.content == "hello"
        assert response.total_tokens == 10
        messages = openai_client._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0]["role"] == "system"

    def test_length_cutoff_without_text_is_exhaustion(self, openai_client):
        openai_client._client.chat.completions.create.return_value = self._response(
            None, finish_reason="length",
        )
        with pytest.raises(ResourceExhaustedError):
            openai_client.complete("x")

    def test_api_error_wrapped(self, openai_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        openai_client._client.chat.completions.create.side_effect = openai.BadRequestError(
            "bad", response=httpx.Response(400, request=request), body=None,
        )
        with pytest.raises(SummarizationError):
            openai_client.complete("x")


def test_openai_compatible_requires_base_url():
    client = LLMClient(LLMConfig(provider="openai-compatible", api_key="k"))
    with pytest.raises(ValueError, match="base_url"):
        client._get_client()


def test_unknown_provider():
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        LLMClient(LLMConfig(provider="nope"))._get_client()
