"""Tests for the transcript parser."""

from __future__ import annotations

import hashlib
import json

import pytest

from recollect.core.models import exchange_id
from recollect.sources.transcript import (
    extract_text,
    format_exchanges,
    iter_records,
    parse_transcript,
)
from tests.helpers.transcripts import assistant, user, write_transcript


class TestPairing:
    def test_simple_pair(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [user("hi there"), assistant("hello")])
        exchanges = parse_transcript(path, "proj")
        assert len(exchanges) == 1
        ex = exchanges[0]
        assert ex.user_message == "hi there"
        assert ex.assistant_message == "hello"
        assert ex.project == "proj"
        assert (ex.line_start, ex.line_end) == (1, 2)

    def test_later_user_turn_replaces_pending(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [user("A"), user("B"), assistant("C")])
        exchanges = parse_transcript(path, "proj")
        assert len(exchanges) == 1
        assert exchanges[0].user_message == "B"
        assert exchanges[0].assistant_message == "C"
        assert exchanges[0].line_start == 2

    def test_assistant_without_user_is_dropped(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [assistant("X")])
        assert parse_transcript(path, "proj") == []

    def test_trailing_user_turn_is_dropped(self, tmp_path):
        path = write_transcript(
            tmp_path / "s.jsonl", [user("q1"), assistant("a1"), user("q2 unanswered")],
        )
        exchanges = parse_transcript(path, "proj")
        assert [e.user_message for e in exchanges] == ["q1"]

    def test_second_assistant_turn_needs_new_user_turn(self, tmp_path):
        path = write_transcript(
            tmp_path / "s.jsonl", [user("q"), assistant("a1"), assistant("a2")],
        )
        exchanges = parse_transcript(path, "proj")
        assert len(exchanges) == 1
        assert exchanges[0].assistant_message == "a1"

    def test_timestamp_comes_from_assistant_record(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [
            user("q", ts="2025-01-01T00:00:00Z"),
            assistant("a", ts="2025-01-02T00:00:00Z"),
        ])
        assert parse_transcript(path, "p")[0].timestamp == "2025-01-02T00:00:00Z"

    def test_missing_timestamp_uses_processing_time(self, tmp_path):
        record = assistant("a")
        del record["timestamp"]
        path = write_transcript(tmp_path / "s.jsonl", [user("q"), record])
        ts = parse_transcript(path, "p")[0].timestamp
        assert ts[:2] == "20"
        assert "T" in ts


class TestRobustness:
    def test_malformed_lines_are_skipped(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [
            "{not json",
            user("q"),
            "[1, 2, 3]",
            '"just a string"',
            assistant("a"),
        ])
        exchanges = parse_transcript(path, "p")
        assert len(exchanges) == 1
        assert (exchanges[0].line_start, exchanges[0].line_end) == (2, 5)

    def test_non_conversation_records_are_skipped(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [
            {"type": "summary", "summary": "whatever"},
            {"type": "user"},
            {"type": "user", "message": "not a dict"},
            user("q"),
            {"type": "system", "message": {"role": "assistant", "content": "x"}},
            assistant("a"),
        ])
        exchanges = parse_transcript(path, "p")
        assert len(exchanges) == 1
        assert exchanges[0].assistant_message == "a"

    def test_blank_lines_count_toward_line_numbers(self, tmp_path):
        path = tmp_path / "s.jsonl"
        path.write_text("\n\n" + json.dumps(user("q")) + "\n\n" + json.dumps(assistant("a")) + "\n")
        ex = parse_transcript(path, "p")[0]
        assert (ex.line_start, ex.line_end) == (3, 5)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_transcript(tmp_path / "nope.jsonl", "p")

    def test_empty_file_has_no_exchanges(self, tmp_path):
        path = tmp_path / "s.jsonl"
        path.write_text("")
        assert parse_transcript(path, "p") == []


class TestTextExtraction:
    def test_string_content(self):
        assert extract_text("plain") == "plain"

    def test_text_blocks_joined_with_newline(self):
        content = [
            {"type": "text", "text": "first"},
            {"type": "tool_use", "name": "bash", "input": {}},
            {"type": "text", "text": "second"},
            {"type": "thinking", "thinking": "hmm"},
        ]
        assert extract_text(content) == "first\nsecond"

    def test_empty_and_non_dict_blocks_dropped(self):
        assert extract_text([{"type": "text", "text": ""}, "stray", 3]) == ""

    def test_unknown_content_shape(self):
        assert extract_text(None) == ""
        assert extract_text({"text": "x"}) == ""

    def test_block_content_in_records(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [
            user("from blocks", blocks=True),
            assistant("reply", blocks=True),
        ])
        ex = parse_transcript(path, "p")[0]
        assert ex.user_message == "from blocks"
        assert ex.assistant_message == "reply"


class TestIds:
    def test_id_is_md5_of_provenance(self, tmp_path):
        path = write_transcript(tmp_path / "s.jsonl", [user("q"), assistant("a")])
        archive = tmp_path / "archive" / "p" / "s.jsonl"
        ex = parse_transcript(path, "p", archive_path=archive)[0]
        expected = hashlib.md5(f"{archive}:1-2".encode()).hexdigest()
        assert ex.id == expected == exchange_id(archive, 1, 2)
        assert ex.archive_path == str(archive)

    def test_ids_stable_across_parses(self, tmp_path):
        path = write_transcript(
            tmp_path / "s.jsonl", [user("q1"), assistant("a1"), user("q2"), assistant("a2")],
        )
        first = [e.id for e in parse_transcript(path, "p")]
        second = [e.id for e in parse_transcript(path, "p")]
        assert first == second
        assert len(set(first)) == 2

    def test_appending_keeps_existing_ids(self, tmp_path):
        records = [user("q1"), assistant("a1")]
        path = write_transcript(tmp_path / "s.jsonl", records)
        before = parse_transcript(path, "p")[0].id
        write_transcript(path, records + [user("q2"), assistant("a2")])
        after = parse_transcript(path, "p")
        assert after[0].id == before
        assert len(after) == 2


def test_iter_records_reports_physical_lines(tmp_path):
    path = write_transcript(tmp_path / "s.jsonl", ["garbage", {"a": 1}, {"b": 2}])
    assert [n for n, _ in iter_records(path)] == [2, 3]


def test_format_exchanges(tmp_path):
    path = write_transcript(
        tmp_path / "s.jsonl", [user("q1"), assistant("a1"), user("q2"), assistant("a2")],
    )
    text = format_exchanges(parse_transcript(path, "p"))
    assert text == "User: q1\n\nAgent: a1\n\n---\n\nUser: q2\n\nAgent: a2"
