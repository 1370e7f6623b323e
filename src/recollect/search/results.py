"""Search results for exchange retrieval."""

from __future__ import annotations

from dataclasses import dataclass

from recollect.core.models import Exchange

SNIPPET_CHARS = 200


@dataclass
class SearchResult:
    """One retrieved exchange and its distance from the query."""

    exchange: Exchange
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance

    @property
    def snippet(self) -> str:
        text = self.exchange.user_message
        if len(text) > SNIPPET_CHARS:
            return text[:SNIPPET_CHARS] + "..."
        return text

    @property
    def date(self) -> str:
        return self.exchange.timestamp[:10]

    @property
    def location(self) -> str:
        ex = self.exchange
        return f"{ex.archive_path}:{ex.line_start}-{ex.line_end}"

    def to_dict(self) -> dict:
        return {
            **self.exchange.to_dict(),
            "distance": self.distance,
            "similarity": self.similarity,
            "snippet": self.snippet,
        }
