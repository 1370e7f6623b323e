"""Unified LLM client wrapping both Anthropic and OpenAI SDKs.

Failures are classified here, at the service boundary, so callers never
inspect error strings:

- transient errors (rate limit, connection, timeout) are retried once
- reasoning/thinking budget exhaustion raises ``ResourceExhaustedError``
- anything else raises ``SummarizationError``
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum

from recollect.core.config import LLMConfig
from recollect.core.errors import ResourceExhaustedError, SummarizationError
from recollect.core.logging import RecollectLogger

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Write concise, factual summaries. Output ONLY the summary - no preamble, "
    'no "Here is", no "I will". Your output will be indexed directly.'
)

_EXHAUSTION_MARKERS = ("budget_tokens", "thinking budget", "reasoning budget")


class ModelTier(Enum):
    FAST = "fast"
    CAPABLE = "capable"


@dataclass
class LLMResponse:
    """Response from an LLM completion call."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int


def _is_exhaustion_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _EXHAUSTION_MARKERS)


class LLMClient:
    """LLM client that dispatches to the Anthropic or OpenAI SDK.

    Supports three providers:
    - "anthropic": Uses the anthropic SDK
    - "openai": Uses the openai SDK with OpenAI's default base URL
    - "openai-compatible": Uses the openai SDK with a custom base_url
    """

    def __init__(
        self,
        config: LLMConfig,
        run_logger: RecollectLogger | None = None,
        retry_delay: float = 5.0,
    ) -> None:
        self.config = config
        self.run_logger = run_logger
        self.retry_delay = retry_delay
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        """Create the underlying SDK client based on provider."""
        api_key = self.config.resolve_api_key()

        if self.config.provider == "anthropic":
            import anthropic

            kwargs = {}
            if api_key:
                kwargs["api_key"] = api_key
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            return anthropic.Anthropic(**kwargs)

        elif self.config.provider in ("openai", "openai-compatible"):
            import openai

            if self.config.provider == "openai-compatible" and not self.config.base_url:
                raise ValueError("openai-compatible provider requires base_url to be set")
            kwargs = {}
            if api_key:
                kwargs["api_key"] = api_key
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            return openai.OpenAI(**kwargs)

        else:
            raise ValueError(
                f"Unknown LLM provider: {self.config.provider!r}. "
                f"Supported: 'anthropic', 'openai', 'openai-compatible'"
            )

    def model_for(self, tier: ModelTier) -> str:
        if tier is ModelTier.CAPABLE:
            return self.config.escalation_model
        return self.config.model

    def complete(
        self,
        prompt: str,
        tier: ModelTier = ModelTier.FAST,
        system: str = SYSTEM_PROMPT,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Send one prompt to the model for ``tier``.

        Raises:
            ResourceExhaustedError: the model ran out of reasoning budget.
            SummarizationError: any other service failure.
        """
        model = self.model_for(tier)
        resolved_max_tokens = max_tokens if max_tokens is not None else self.config.max_tokens
        start = time.time()

        if self.config.provider == "anthropic":
            response = self._complete_anthropic(prompt, system, model, resolved_max_tokens)
        else:
            response = self._complete_openai(prompt, system, model, resolved_max_tokens)

        if self.run_logger is not None:
            self.run_logger.llm_call(
                response.model, response.input_tokens, response.output_tokens,
                time.time() - start,
            )
        return response

    def _retry_or_raise(self, attempt: int, model: str, exc: Exception) -> None:
        if attempt == 0:
            logger.warning("Transient error from %s, retrying in %ss: %s",
                           model, self.retry_delay, exc)
            time.sleep(self.retry_delay)
            return
        raise SummarizationError(f"{model} failed after 2 attempts: {exc}") from exc

    def _complete_anthropic(
        self, prompt: str, system: str, model: str, max_tokens: int,
    ) -> LLMResponse:
        import anthropic

        for attempt in range(2):
            try:
                response = self._get_client().messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=self.config.temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                )
            except (
                anthropic.RateLimitError,
                anthropic.APIConnectionError,
                anthropic.APITimeoutError,
            ) as exc:
                self._retry_or_raise(attempt, model, exc)
                continue
            except anthropic.APIError as exc:
                if _is_exhaustion_message(str(exc)):
                    raise ResourceExhaustedError(str(exc), model=model) from exc
                raise SummarizationError(f"LLM API error from {model}: {exc}") from exc

            # Thinking blocks carry no .text; keep only text blocks
            text = "".join(
                block.text for block in response.content
                if isinstance(getattr(block, "text", None), str)
            ).strip()
            if not text and getattr(response, "stop_reason", None) == "max_tokens":
                raise ResourceExhaustedError(
                    f"{model} exhausted max_tokens={max_tokens} before producing text",
                    model=model,
                )
            input_tokens = getattr(response.usage, "input_tokens", 0)
            output_tokens = getattr(response.usage, "output_tokens", 0)
            return LLMResponse(
                content=text,
                model=getattr(response, "model", None) or model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )

        raise SummarizationError(f"{model} failed")

    def _complete_openai(
        self, prompt: str, system: str, model: str, max_tokens: int,
    ) -> LLMResponse:
        import openai

        for attempt in range(2):
            try:
                response = self._get_client().chat.completions.create(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=self.config.temperature,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": prompt},
                    ],
                )
            except (openai.RateLimitError, openai.APIConnectionError, openai.APITimeoutError) as exc:
                self._retry_or_raise(attempt, model, exc)
                continue
            except openai.APIError as exc:
                if _is_exhaustion_message(str(exc)):
                    raise ResourceExhaustedError(str(exc), model=model) from exc
                raise SummarizationError(f"LLM API error from {model}: {exc}") from exc

            choice = response.choices[0]
            content = (choice.message.content or "").strip()
            if not content and choice.finish_reason == "length":
                raise ResourceExhaustedError(
                    f"{model} exhausted max_tokens={max_tokens} before producing text",
                    model=model,
                )
            usage = response.usage
            return LLMResponse(
                content=content,
                model=response.model or model,
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            )

        raise SummarizationError(f"{model} failed")
