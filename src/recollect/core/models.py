"""Core data models: Exchange and TranscriptFile."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

SUMMARY_SUFFIX = "-summary.txt"


def exchange_id(archive_path: str | Path, line_start: int, line_end: int) -> str:
    """Deterministic id for an exchange: md5 of its provenance."""
    key = f"{archive_path}:{line_start}-{line_end}"
    return hashlib.md5(key.encode()).hexdigest()


def summary_path_for(transcript_path: str | Path) -> Path:
    """``<dir>/<session>.jsonl`` -> ``<dir>/<session>-summary.txt``."""
    path = Path(transcript_path)
    return path.with_name(f"{path.stem}{SUMMARY_SUFFIX}")


@dataclass
class Exchange:
    """One user turn paired with the assistant turn that answered it."""

    id: str
    project: str
    timestamp: str
    user_message: str
    assistant_message: str
    archive_path: str
    line_start: int
    line_end: int

    @property
    def content_hash(self) -> str:
        payload = f"{self.user_message}\x00{self.assistant_message}"
        return f"sha256:{hashlib.sha256(payload.encode()).hexdigest()}"

    def embedding_text(self, max_chars: int = 2000) -> str:
        """Text sent to the embedding service for this exchange."""
        text = f"User: {self.user_message}\n\nAssistant: {self.assistant_message}"
        return text[:max_chars]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project": self.project,
            "timestamp": self.timestamp,
            "user_message": self.user_message,
            "assistant_message": self.assistant_message,
            "archive_path": self.archive_path,
            "line_start": self.line_start,
            "line_end": self.line_end,
        }


@dataclass
class TranscriptFile:
    """One transcript as seen by the orchestrator: live source plus archive mirror."""

    project: str
    source_path: Path
    archive_path: Path

    @property
    def session_id(self) -> str:
        return self.source_path.stem

    @property
    def summary_path(self) -> Path:
        return summary_path_for(self.archive_path)

    @property
    def parse_path(self) -> Path:
        """Live source when it still exists, otherwise the archive copy."""
        if self.source_path.exists():
            return self.source_path
        return self.archive_path
