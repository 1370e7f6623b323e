"""Transcript parser: append-only JSONL conversation log → paired Exchanges.

Each line of a transcript is one JSON record::

    {"type": "user", "message": {"role": "user", "content": "..."},
     "timestamp": "2025-01-01T12:00:00Z", "uuid": "..."}

``content`` is either a plain string or a list of content blocks, of which
only ``{"type": "text", "text": ...}`` blocks carry conversational text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from recollect.core.models import Exchange, exchange_id

logger = logging.getLogger(__name__)

_CONVERSATION_TYPES = {"user", "assistant"}


def iter_records(path: str | Path) -> Iterator[tuple[int, dict]]:
    """Yield ``(line_number, record)`` for every well-formed JSON object line.

    Line numbers are 1-based and count blank and malformed lines, so they
    always point at the physical line in the file.
    """
    with open(path, encoding="utf-8", errors="replace") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                logger.debug("%s:%d: skipping malformed JSON", path, line_number)
                continue
            if isinstance(record, dict):
                yield line_number, record


def extract_text(content: object) -> str:
    """Return the conversational text of a message's ``content`` field."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            block["text"]
            for block in content
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
            and block["text"]
        ]
        return "\n".join(texts)
    return ""


def parse_transcript(
    path: str | Path,
    project: str,
    archive_path: str | Path | None = None,
) -> list[Exchange]:
    """Parse a transcript into user/assistant exchanges.

    Pairing rules:
    - a user turn waits in a single pending slot; a later user turn replaces it
    - an assistant turn closes the pending user turn into an Exchange
    - an assistant turn with nothing pending is dropped
    - a user turn still pending at end of file is dropped

    Provenance (and therefore the exchange id) is stamped with
    ``archive_path``, which defaults to ``path`` itself. Malformed records are
    skipped; a missing file raises ``FileNotFoundError``.
    """
    provenance = str(archive_path if archive_path is not None else path)
    exchanges: list[Exchange] = []

    pending_text: str | None = None
    pending_line = 0

    for line_number, record in iter_records(path):
        if record.get("type") not in _CONVERSATION_TYPES:
            continue
        message = record.get("message")
        if not isinstance(message, dict):
            continue

        role = message.get("role", record["type"])
        text = extract_text(message.get("content"))

        if role == "user":
            pending_text = text
            pending_line = line_number
        elif role == "assistant" and pending_text is not None:
            timestamp = record.get("timestamp")
            if not isinstance(timestamp, str) or not timestamp:
                timestamp = datetime.now(timezone.utc).isoformat()
            exchanges.append(Exchange(
                id=exchange_id(provenance, pending_line, line_number),
                project=project,
                timestamp=timestamp,
                user_message=pending_text,
                assistant_message=text,
                archive_path=provenance,
                line_start=pending_line,
                line_end=line_number,
            ))
            pending_text = None

    return exchanges


def format_exchanges(exchanges: list[Exchange]) -> str:
    """Render exchanges as plain conversation text."""
    return "\n\n---\n\n".join(
        f"User: {ex.user_message}\n\nAgent: {ex.assistant_message}" for ex in exchanges
    )
