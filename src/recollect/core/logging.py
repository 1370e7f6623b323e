"""Structured run logging and verbosity levels for indexing runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    DEFAULT = 0   # Final stats only
    VERBOSE = 1   # + one line per transcript
    DEBUG = 2     # + LLM calls, skipped exchanges


@dataclass
class RunLog:
    """Totals for one indexing run, serializable to dict."""

    run_id: str = ""
    transcripts_seen: int = 0
    transcripts_indexed: int = 0
    transcripts_empty: int = 0
    transcripts_failed: int = 0
    archived: int = 0
    summaries_written: int = 0
    summaries_failed: int = 0
    llm_calls: int = 0
    tokens_used: int = 0
    exchanges_indexed: int = 0
    exchanges_skipped: int = 0
    total_time: float = 0.0
    failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "transcripts_seen": self.transcripts_seen,
            "transcripts_indexed": self.transcripts_indexed,
            "transcripts_empty": self.transcripts_empty,
            "transcripts_failed": self.transcripts_failed,
            "archived": self.archived,
            "summaries_written": self.summaries_written,
            "summaries_failed": self.summaries_failed,
            "llm_calls": self.llm_calls,
            "tokens_used": self.tokens_used,
            "exchanges_indexed": self.exchanges_indexed,
            "exchanges_skipped": self.exchanges_skipped,
            "total_time": self.total_time,
            "failures": list(self.failures),
        }


class RecollectLogger:
    """Structured logger for indexing runs.

    Writes a JSONL event log to ``log_dir/<run_id>.jsonl`` and optionally
    emits console output via Rich based on verbosity level.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.DEFAULT,
        log_dir: Path | None = None,
        console: Console | None = None,
    ):
        self.verbosity = verbosity
        self.log_dir = log_dir
        self.console = console or Console(stderr=True)
        self.run_log = RunLog()
        self._log_file = None
        self.log_path: Path | None = None
        self._run_start: float = 0.0

    def _write_event(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        if self._log_file is not None:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()
            self._log_file.write(json.dumps(event) + "\n")
            self._log_file.flush()

    def _console_print(self, message: str, min_verbosity: Verbosity) -> None:
        if self.verbosity >= min_verbosity:
            self.console.print(message)

    # -- Run lifecycle --

    def run_start(self, mode: str, transcript_count: int) -> None:
        """Begin a run: fresh totals and, with a log_dir, a new JSONL file."""
        self.close()
        self.run_log = RunLog(
            run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ"),
        )
        self._run_start = time.time()
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.log_path = self.log_dir / f"{self.run_log.run_id}.jsonl"
            self._log_file = open(self.log_path, "a")
        self._write_event({
            "event": "run_start",
            "mode": mode,
            "transcript_count": transcript_count,
        })
        self._console_print(
            f"[bold]Indexing[/bold] {transcript_count} transcript(s) ({mode})",
            Verbosity.VERBOSE,
        )

    def run_finish(self) -> RunLog:
        """Finalize totals, write the closing event and close the log file."""
        self.run_log.total_time = time.time() - self._run_start if self._run_start else 0.0
        self._write_event({"event": "run_finish", **self.run_log.to_dict()})
        self.close()
        return self.run_log

    # -- Transcript events --

    def transcript_archived(self, project: str, archive_path: Path) -> None:
        self.run_log.archived += 1
        self._write_event({
            "event": "transcript_archived",
            "project": project,
            "archive_path": str(archive_path),
        })
        self._console_print(f"  [dim]Archived[/dim] {archive_path.name}", Verbosity.VERBOSE)

    def transcript_empty(self, project: str, path: Path) -> None:
        self.run_log.transcripts_seen += 1
        self.run_log.transcripts_empty += 1
        self._write_event({
            "event": "transcript_skipped",
            "project": project,
            "path": str(path),
            "reason": "no exchanges",
        })
        self._console_print(
            f"  [yellow]Skipped[/yellow] {path.name} (no exchanges)", Verbosity.VERBOSE
        )

    def transcript_indexed(
        self, project: str, path: Path, indexed: int, skipped: int,
    ) -> None:
        self.run_log.transcripts_seen += 1
        self.run_log.transcripts_indexed += 1
        self.run_log.exchanges_indexed += indexed
        self.run_log.exchanges_skipped += skipped
        self._write_event({
            "event": "transcript_indexed",
            "project": project,
            "path": str(path),
            "exchanges_indexed": indexed,
            "exchanges_skipped": skipped,
        })
        self._console_print(
            f"  [green]+[/green] {project}/{path.name}: "
            f"{indexed} indexed, {skipped} unchanged",
            Verbosity.VERBOSE,
        )

    def transcript_failed(self, project: str, path: Path, error: str) -> None:
        self.run_log.transcripts_seen += 1
        self.run_log.transcripts_failed += 1
        self.run_log.failures.append(f"{project}/{path.name}: {error}")
        self._write_event({
            "event": "transcript_failed",
            "project": project,
            "path": str(path),
            "error": error,
        })
        self._console_print(
            f"  [red]Failed[/red] {project}/{path.name}: {error}", Verbosity.DEFAULT
        )

    # -- Summary events --

    def summary_written(self, summary_path: Path, words: int) -> None:
        self.run_log.summaries_written += 1
        self._write_event({
            "event": "summary_written",
            "path": str(summary_path),
            "words": words,
        })
        self._console_print(f"    [dim]Summary: {words} words[/dim]", Verbosity.VERBOSE)

    def summary_failed(self, summary_path: Path, error: str) -> None:
        self.run_log.summaries_failed += 1
        self._write_event({
            "event": "summary_failed",
            "path": str(summary_path),
            "error": error,
        })
        self._console_print(
            f"    [yellow]Summary failed:[/yellow] {error}", Verbosity.DEFAULT
        )

    # -- LLM call events --

    def llm_call(self, model: str, input_tokens: int, output_tokens: int, elapsed: float) -> None:
        self.run_log.llm_calls += 1
        self.run_log.tokens_used += input_tokens + output_tokens
        self._write_event({
            "event": "llm_call",
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "duration_seconds": round(elapsed, 3),
        })
        self._console_print(
            f"        [dim]LLM {model}: {elapsed:.1f}s, "
            f"{input_tokens}in/{output_tokens}out tokens[/dim]",
            Verbosity.DEBUG,
        )

    def close(self) -> None:
        """Close the log file if open."""
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
