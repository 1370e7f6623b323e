"""Tests for structured run logging."""

from __future__ import annotations

import io
import json
from pathlib import Path

from rich.console import Console

from recollect.core.logging import RecollectLogger, RunLog, Verbosity


def _events(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines()]


def _logger(tmp_path, verbosity=Verbosity.DEFAULT):
    buf = io.StringIO()
    console = Console(file=buf, force_terminal=False, width=200)
    return RecollectLogger(verbosity=verbosity, log_dir=tmp_path / "logs", console=console), buf


class TestRunLog:
    def test_to_dict_copies_failures(self):
        log = RunLog(run_id="r", failures=["a"])
        d = log.to_dict()
        d["failures"].append("b")
        assert log.failures == ["a"]
        assert d["run_id"] == "r"


class TestRecollectLogger:
    def test_run_writes_jsonl(self, tmp_path):
        rl, _ = _logger(tmp_path)
        rl.run_start("all", 2)
        rl.transcript_archived("p", Path("/a/p/s1.jsonl"))
        rl.transcript_indexed("p", Path("/a/p/s1.jsonl"), indexed=3, skipped=1)
        rl.transcript_empty("p", Path("/a/p/s2.jsonl"))
        rl.llm_call("model-x", 100, 20, 0.5)
        run_log = rl.run_finish()

        events = _events(rl.log_path)
        assert [e["event"] for e in events] == [
            "run_start", "transcript_archived", "transcript_indexed",
            "transcript_skipped", "llm_call", "run_finish",
        ]
        assert all("timestamp" in e for e in events)
        assert events[0]["transcript_count"] == 2
        assert events[-1]["exchanges_indexed"] == 3

        assert run_log.transcripts_seen == 2
        assert run_log.transcripts_indexed == 1
        assert run_log.transcripts_empty == 1
        assert run_log.exchanges_skipped == 1
        assert run_log.tokens_used == 120

    def test_each_run_gets_fresh_totals_and_file(self, tmp_path):
        rl, _ = _logger(tmp_path)
        rl.run_start("all", 1)
        rl.transcript_failed("p", Path("/a/p/s.jsonl"), "boom")
        first = rl.run_finish()
        first_path = rl.log_path

        rl.run_start("all", 0)
        second = rl.run_finish()

        assert first.transcripts_failed == 1
        assert first.failures == ["p/s.jsonl: boom"]
        assert second.transcripts_failed == 0
        assert rl.log_path != first_path
        assert _events(first_path)[-1]["transcripts_failed"] == 1
        assert _events(rl.log_path)[-1]["event"] == "run_finish"

    def test_summary_events(self, tmp_path):
        rl, _ = _logger(tmp_path)
        rl.run_start("all", 1)
        rl.summary_written(Path("/a/p/s-summary.txt"), 42)
        rl.summary_failed(Path("/a/p/t-summary.txt"), "service down")
        run_log = rl.run_finish()
        assert run_log.summaries_written == 1
        assert run_log.summaries_failed == 1
        failed = [e for e in _events(rl.log_path) if e["event"] == "summary_failed"]
        assert failed[0]["error"] == "service down"

    def test_without_log_dir_counts_only(self):
        rl = RecollectLogger(console=Console(file=io.StringIO()))
        rl.run_start("all", 1)
        rl.transcript_indexed("p", Path("s.jsonl"), 1, 0)
        assert rl.run_finish().transcripts_indexed == 1
        assert rl.log_path is None

    def test_default_verbosity_shows_failures_only(self, tmp_path):
        rl, buf = _logger(tmp_path)
        rl.run_start("all", 2)
        rl.transcript_indexed("p", Path("ok.jsonl"), 1, 0)
        rl.transcript_failed("p", Path("bad.jsonl"), "boom")
        rl.run_finish()
        out = buf.getvalue()
        assert "bad.jsonl" in out
        assert "ok.jsonl" not in out

    def test_verbose_shows_transcripts(self, tmp_path):
        rl, buf = _logger(tmp_path, Verbosity.VERBOSE)
        rl.run_start("all", 1)
        rl.transcript_indexed("p", Path("ok.jsonl"), 2, 5)
        rl.llm_call("m", 1, 1, 0.1)
        rl.run_finish()
        out = buf.getvalue()
        assert "p/ok.jsonl: 2 indexed, 5 unchanged" in out
        assert "LLM m" not in out

    def test_debug_shows_llm_calls(self, tmp_path):
        rl, buf = _logger(tmp_path, Verbosity.DEBUG)
        rl.run_start("all", 0)
        rl.llm_call("m", 10, 2, 0.1)
        rl.run_finish()
        assert "LLM m" in buf.getvalue()
