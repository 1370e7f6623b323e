"""Transcript builders and fake services shared by the test suite."""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass, field
from pathlib import Path

from recollect.build.llm_client import LLMResponse, ModelTier
from recollect.core.config import EmbeddingConfig

DIMS = 384


# ---------------------------------------------------------------------------
# Transcript builders
# ---------------------------------------------------------------------------


def user(text, ts="2025-03-01T10:00:00Z", blocks=False) -> dict:
    content = [{"type": "text", "text": text}] if blocks else text
    return {"type": "user", "message": {"role": "user", "content": content}, "timestamp": ts}


def assistant(text, ts="2025-03-01T10:00:05Z", blocks=True) -> dict:
    content = [{"type": "text", "text": text}] if blocks else text
    return {
        "type": "assistant",
        "message": {"role": "assistant", "content": content},
        "timestamp": ts,
    }


def write_transcript(path: Path, records: list) -> Path:
    """Write records as JSONL. Strings are written verbatim (for malformed lines)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n")
    return path


def conversation(n: int, topic: str = "sqlite") -> list[dict]:
    """``n`` substantive user/assistant pairs."""
    records = []
    for i in range(n):
        records.append(user(f"Question {i} about {topic}: how do I configure the {topic} cache?"))
        records.append(assistant(
            f"Answer {i}: set the {topic} cache size in the config file and restart the worker."
        ))
    return records


# ---------------------------------------------------------------------------
# Fake services
# ---------------------------------------------------------------------------


def fake_vector(text: str, dims: int = DIMS) -> list[float]:
    """Deterministic bag-of-words unit vector; identical text gives identical vectors."""
    vec = [0.0] * dims
    vec[0] = 1.0
    for word in text.lower().split():
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % (dims - 1)
        vec[1 + bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec]


class FakeEmbedder:
    """Stands in for EmbeddingProvider; counts every text it embeds."""

    def __init__(self, dims: int = DIMS):
        self.config = EmbeddingConfig(dimensions=dims)
        self.calls = 0
        self.texts: list[str] = []

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        self.texts.append(text)
        return fake_vector(text, self.config.dimensions)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]

    def embed_exchange(self, exchange) -> list[float]:
        return self.embed(exchange.embedding_text(self.config.max_chars))


@dataclass
class FakeLLMClient:
    """Stands in for LLMClient.

    ``handler(prompt, tier)`` returns the response text or raises; the default
    returns a tagged one-line summary.
    """

    handler: object = None
    calls: list[tuple[str, ModelTier]] = field(default_factory=list)

    def complete(self, prompt: str, tier: ModelTier = ModelTier.FAST, **kwargs) -> LLMResponse:
        self.calls.append((prompt, tier))
        if self.handler is not None:
            text = self.handler(prompt, tier)
        else:
            text = f"<summary>Summary number {len(self.calls)}.</summary>"
        return LLMResponse(
            content=text, model=f"fake-{tier.value}",
            input_tokens=10, output_tokens=5, total_tokens=15,
        )
