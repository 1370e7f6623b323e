"""Configuration resolution: explicit config > env > settings defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from recollect.core.errors import ConfigError


def redact_api_key(key: str | None) -> str | None:
    """Redact an API key, showing only the first 4 and last 4 characters."""
    if key is None:
        return None
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


@dataclass
class LLMConfig:
    """Configuration for the summarization service.

    Two capability tiers are used: ``model`` for ordinary summaries and
    ``escalation_model`` for a single retry when the fast tier runs out of
    reasoning budget.

    Providers:
    - "anthropic": Anthropic Claude models (default)
    - "openai": OpenAI chat models
    - "openai-compatible": any OpenAI-compatible API (requires base_url)

    Environment variables:
    - RECOLLECT_LLM_PROVIDER, RECOLLECT_LLM_MODEL,
      RECOLLECT_LLM_ESCALATION_MODEL, RECOLLECT_LLM_BASE_URL
    - ANTHROPIC_API_KEY / OPENAI_API_KEY
    """

    provider: str = "anthropic"
    model: str = "claude-haiku-4-5-20251001"
    escalation_model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.3
    max_tokens: int = 4096
    base_url: str | None = None
    api_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> LLMConfig:
        """Create LLMConfig from a dict, applying env var overrides.

        Precedence: explicit dict values > env vars > class defaults.
        """
        config = cls()

        for attr, env_name in (
            ("provider", "RECOLLECT_LLM_PROVIDER"),
            ("model", "RECOLLECT_LLM_MODEL"),
            ("escalation_model", "RECOLLECT_LLM_ESCALATION_MODEL"),
            ("base_url", "RECOLLECT_LLM_BASE_URL"),
        ):
            value = os.environ.get(env_name)
            if value:
                setattr(config, attr, value)

        for key in ("provider", "model", "escalation_model", "temperature",
                    "max_tokens", "base_url", "api_key"):
            if key in data:
                setattr(config, key, data[key])

        return config

    def resolve_api_key(self) -> str | None:
        """Resolve the API key: explicit > env var per provider."""
        if self.api_key:
            return self.api_key
        if self.provider == "anthropic":
            return os.environ.get("ANTHROPIC_API_KEY")
        return os.environ.get("OPENAI_API_KEY")


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding service.

    Backends:
    - "fastembed": local ONNX embeddings (default, no API key needed)
    - "openai": OpenAI-compatible embeddings API
    """

    provider: str = "fastembed"
    model: str = "BAAI/bge-small-en-v1.5"
    dimensions: int = 384
    base_url: str | None = None
    api_key: str | None = None
    batch_size: int = 64
    max_chars: int = 2000

    @classmethod
    def from_dict(cls, data: dict) -> EmbeddingConfig:
        """Create EmbeddingConfig from a dict."""
        config = cls()
        for key in ("provider", "model", "dimensions", "base_url", "api_key",
                    "batch_size", "max_chars"):
            if key in data:
                setattr(config, key, data[key])
        return config

    def resolve_api_key(self) -> str | None:
        """Resolve the API key: explicit > env var."""
        if self.api_key:
            return self.api_key
        return os.environ.get("OPENAI_API_KEY")


@dataclass
class IndexConfig:
    """Everything an indexing run needs, passed explicitly to each component."""

    transcript_root: Path = Path("~/.claude/projects")
    archive_root: Path = Path("~/.recollect/archive")
    db_path: Path = Path("~/.recollect/index.db")
    log_dir: Path | None = None
    excluded_projects: list[str] = field(default_factory=list)
    chunk_size: int = 8
    direct_summary_threshold: int = 15
    corrupt_min_bytes: int = 1024
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)

    def __post_init__(self) -> None:
        self.transcript_root = Path(self.transcript_root).expanduser().resolve()
        self.archive_root = Path(self.archive_root).expanduser().resolve()
        self.db_path = Path(self.db_path).expanduser().resolve()
        if self.log_dir is not None:
            self.log_dir = Path(self.log_dir).expanduser().resolve()
        if self.chunk_size < 1:
            raise ConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.direct_summary_threshold < 0:
            raise ConfigError(
                f"direct_summary_threshold must be >= 0, got {self.direct_summary_threshold}"
            )

    @classmethod
    def from_settings(cls, overrides: dict | None = None) -> IndexConfig:
        """Build from environment-backed settings, then apply overrides."""
        from recollect.config import get_settings

        settings = get_settings()
        data = {
            "transcript_root": settings.transcript_root,
            "archive_root": settings.archive_root,
            "db_path": settings.db_path,
            "log_dir": settings.log_dir,
            "excluded_projects": list(settings.excluded_projects),
            "chunk_size": settings.chunk_size,
            "direct_summary_threshold": settings.direct_summary_threshold,
            "corrupt_min_bytes": settings.corrupt_min_bytes,
        }
        data.update(overrides or {})
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> IndexConfig:
        """Create IndexConfig from a flat dict with optional ``llm``/``embedding`` tables."""
        known = {
            "transcript_root", "archive_root", "db_path", "log_dir",
            "excluded_projects", "chunk_size", "direct_summary_threshold",
            "corrupt_min_bytes",
        }
        unknown = set(data) - known - {"llm", "embedding"}
        if unknown:
            raise ConfigError(f"Unknown config option(s): {', '.join(sorted(unknown))}")

        kwargs = {k: v for k, v in data.items() if k in known}
        llm_data = data.get("llm", {})
        embedding_data = data.get("embedding", {})
        return cls(
            **kwargs,
            llm=llm_data if isinstance(llm_data, LLMConfig) else LLMConfig.from_dict(llm_data),
            embedding=(
                embedding_data
                if isinstance(embedding_data, EmbeddingConfig)
                else EmbeddingConfig.from_dict(embedding_data)
            ),
        )


def load_config(path: str | Path | None = None) -> IndexConfig:
    """Load an IndexConfig from a YAML file layered over the environment settings.

    The file is a mapping with optional ``index``, ``llm`` and ``embedding``
    sections. With no path, only settings and env vars apply.
    """
    if path is None:
        return IndexConfig.from_settings()

    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    overrides = dict(raw.get("index") or {})
    if raw.get("llm"):
        overrides["llm"] = raw["llm"]
    if raw.get("embedding"):
        overrides["embedding"] = raw["embedding"]
    return IndexConfig.from_settings(overrides)
