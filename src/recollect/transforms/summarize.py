"""Hierarchical summarizer: one summary per transcript.

Short transcripts are summarized in one call. Long ones are split into
contiguous chunks, each chunk is summarized, and the chunk summaries are
synthesized into a single paragraph. Chunk and synthesis failures degrade
the result instead of failing the whole transcript.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from recollect.build.llm_client import LLMClient, ModelTier
from recollect.core.errors import ResourceExhaustedError, SummarizationError
from recollect.core.models import Exchange
from recollect.sources.transcript import format_exchanges

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"

TRIVIAL_SUMMARY = "Trivial conversation with no substantive content."
ERROR_SUMMARY = "Error: Unable to summarize conversation."

NOOP_COMMANDS = frozenset({"/exit", "/quit", "/clear"})
TRIVIAL_MAX_CHARS = 100

_SUMMARY_TAG = re.compile(r"<summary>(.*?)</summary>", re.DOTALL | re.IGNORECASE)


def load_prompt(name: str) -> str:
    """Load a prompt template from the prompts/ directory."""
    return (PROMPTS_DIR / f"{name}.txt").read_text()


def extract_summary(text: str) -> str:
    """Return the text inside ``<summary>`` tags, or the whole response if untagged."""
    match = _SUMMARY_TAG.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def chunk_exchanges(exchanges: list[Exchange], chunk_size: int) -> list[list[Exchange]]:
    """Split into contiguous chunks of ``chunk_size``; the last may be smaller."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [exchanges[i:i + chunk_size] for i in range(0, len(exchanges), chunk_size)]


def is_trivial(exchanges: list[Exchange]) -> bool:
    if not exchanges:
        return True
    if len(exchanges) != 1:
        return False
    only = exchanges[0]
    if only.user_message.strip() in NOOP_COMMANDS:
        return True
    return len(format_exchanges(exchanges)) < TRIVIAL_MAX_CHARS


class HierarchicalSummarizer:
    """Chunk-then-synthesize summarization over an ``LLMClient``."""

    def __init__(
        self,
        client: LLMClient,
        chunk_size: int = 8,
        direct_threshold: int = 15,
    ):
        self.client = client
        self.chunk_size = chunk_size
        self.direct_threshold = direct_threshold
        self.calls = 0

    def summarize(self, exchanges: list[Exchange]) -> str:
        """Summarize a transcript's exchanges. Never returns an empty string.

        Raises ``SummarizationError`` only when the direct-path call fails;
        the hierarchical path absorbs failures into degraded output.
        """
        if is_trivial(exchanges):
            return TRIVIAL_SUMMARY

        if len(exchanges) <= self.direct_threshold:
            prompt = load_prompt("summary_direct").format(text=format_exchanges(exchanges))
            return self._call(prompt)

        chunks = chunk_exchanges(exchanges, self.chunk_size)
        logger.debug("Summarizing %d exchanges in %d chunks", len(exchanges), len(chunks))

        chunk_summaries: list[str] = []
        template = load_prompt("summary_chunk")
        for i, chunk in enumerate(chunks, start=1):
            try:
                chunk_summaries.append(self._call(template.format(text=format_exchanges(chunk))))
            except SummarizationError as exc:
                logger.warning("Chunk %d/%d summary failed, skipping: %s", i, len(chunks), exc)

        if not chunk_summaries:
            return ERROR_SUMMARY

        numbered = "\n".join(f"{i}. {s}" for i, s in enumerate(chunk_summaries, start=1))
        try:
            return self._call(load_prompt("summary_synthesis").format(text=numbered))
        except SummarizationError as exc:
            logger.warning("Synthesis failed, falling back to chunk summaries: %s", exc)
            return " ".join(chunk_summaries)

    def _call(self, prompt: str) -> str:
        """FAST tier, escalating once to CAPABLE on budget exhaustion.

        If the capable tier is exhausted too, its error text becomes the result.
        """
        try:
            return self._complete(prompt, ModelTier.FAST)
        except ResourceExhaustedError as exc:
            logger.info("Fast tier exhausted its budget, escalating: %s", exc)

        try:
            return self._complete(prompt, ModelTier.CAPABLE)
        except ResourceExhaustedError as exc:
            logger.warning("Capable tier exhausted its budget too: %s", exc)
            return f"Error: {exc}"

    def _complete(self, prompt: str, tier: ModelTier) -> str:
        self.calls += 1
        response = self.client.complete(prompt, tier=tier)
        summary = extract_summary(response.content)
        if not summary:
            raise SummarizationError(f"Empty summary from {response.model}")
        return summary
