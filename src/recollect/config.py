"""Environment-backed settings for recollect.

Storage layout:
- archive_root: mirrored transcript copies and their -summary.txt files
- db_path: SQLite index (exchange rows + sqlite-vec vectors)
- log_dir: JSONL run logs
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RECOLLECT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    transcript_root: Path = Field(default=Path("~/.claude/projects"))
    archive_root: Path = Field(default=Path("~/.recollect/archive"))
    db_path: Path = Field(default=Path("~/.recollect/index.db"))
    log_dir: Path | None = Field(default=Path("~/.recollect/logs"))

    # JSON list in the environment, e.g. RECOLLECT_EXCLUDED_PROJECTS='["scratch"]'
    excluded_projects: list[str] = Field(default_factory=list)

    chunk_size: int = 8
    direct_summary_threshold: int = 15
    corrupt_min_bytes: int = 1024


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings cache (useful for testing)."""
    global _settings
    _settings = None
