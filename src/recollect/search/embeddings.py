"""Embedding generation with dual backend (FastEmbed + OpenAI)."""

from __future__ import annotations

import os
import warnings

from recollect.core.config import EmbeddingConfig
from recollect.core.models import Exchange


def _suppress_hf_warnings() -> None:
    """Suppress noisy HuggingFace/tokenizers warnings during embedding model load."""
    os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")
    os.environ.setdefault("HF_HUB_DISABLE_PROGRESS_BARS", "1")
    warnings.filterwarnings("ignore", message=".*huggingface.*", category=FutureWarning)
    warnings.filterwarnings("ignore", module="huggingface_hub")


class FastEmbedBackend:
    """Local embedding backend using FastEmbed (ONNX Runtime)."""

    _model_cache: dict[str, object] = {}  # shared across instances, models are slow to load

    def __init__(self, config: EmbeddingConfig):
        self.model_name = config.model
        self.batch_size = config.batch_size

    def _get_model(self):
        if self.model_name not in self._model_cache:
            _suppress_hf_warnings()
            from fastembed import TextEmbedding

            self._model_cache[self.model_name] = TextEmbedding(model_name=self.model_name)
        return self._model_cache[self.model_name]

    def embed(self, text: str) -> list[float]:
        model = self._get_model()
        return next(iter(model.embed([text]))).tolist()

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._get_model()
        return [e.tolist() for e in model.embed(texts, batch_size=self.batch_size)]


class OpenAIBackend:
    """Remote embedding backend using an OpenAI-compatible API."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self.batch_size = config.batch_size
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import OpenAI

            kwargs: dict = {}
            api_key = self.config.resolve_api_key()
            if api_key:
                kwargs["api_key"] = api_key
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = OpenAI(**kwargs)
        return self._client

    def _embed_chunk(self, texts: list[str]) -> list[list[float]]:
        kwargs: dict = {"model": self.config.model, "input": texts}
        if self.config.dimensions:
            kwargs["dimensions"] = self.config.dimensions
        response = self._get_client().embeddings.create(**kwargs)
        return [d.embedding for d in sorted(response.data, key=lambda d: d.index)]

    def embed(self, text: str) -> list[float]:
        return self._embed_chunk([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        results: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            results.extend(self._embed_chunk(texts[i:i + self.batch_size]))
        return results


class EmbeddingProvider:
    """Text → fixed-length vector, dispatching on ``config.provider``.

    ``calls`` counts texts sent to the backend, so callers can assert that an
    unchanged re-run embeds nothing.
    """

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self.calls = 0
        self._backend: FastEmbedBackend | OpenAIBackend | None = None

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def _get_backend(self) -> FastEmbedBackend | OpenAIBackend:
        """Lazily create the embedding backend."""
        if self._backend is None:
            if self.config.provider == "fastembed":
                self._backend = FastEmbedBackend(self.config)
            elif self.config.provider == "openai":
                self._backend = OpenAIBackend(self.config)
            else:
                raise ValueError(
                    f"Unknown embedding provider: {self.config.provider!r}. "
                    f"Supported: 'fastembed', 'openai'"
                )
        return self._backend

    def _check(self, vector: list[float]) -> list[float]:
        if len(vector) != self.config.dimensions:
            raise ValueError(
                f"Embedding model {self.config.model} returned {len(vector)} dims, "
                f"expected {self.config.dimensions}"
            )
        return vector

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        return self._check(self._get_backend().embed(text))

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        self.calls += len(texts)
        return [self._check(v) for v in self._get_backend().embed_batch(texts)]

    def embed_exchange(self, exchange: Exchange) -> list[float]:
        return self.embed(exchange.embedding_text(self.config.max_chars))
