"""Semantic search over the exchange index."""

from __future__ import annotations

import logging

from recollect.search.embeddings import EmbeddingProvider
from recollect.search.results import SearchResult
from recollect.search.store import MAX_K, IndexStore

logger = logging.getLogger(__name__)

# Nearest neighbours fetched per requested result when filtering by project
PROJECT_OVERFETCH = 5


class Searcher:
    """Embeds a query once and ranks stored exchanges by vector distance."""

    def __init__(self, store: IndexStore, embedder: EmbeddingProvider):
        self.store = store
        self.embedder = embedder

    def search(
        self,
        query: str,
        limit: int = 10,
        project: str | None = None,
    ) -> list[SearchResult]:
        """Nearest exchanges first. Empty store or blank query gives no results."""
        if not query.strip() or limit <= 0:
            return []
        vector = self.embedder.embed(query)

        k = limit
        if project:
            k = min(limit * PROJECT_OVERFETCH, MAX_K)
        hits = self.store.query(vector, k=k)
        if project:
            hits = [(ex, d) for ex, d in hits if ex.project == project]

        logger.debug("Query %r: %d hit(s)", query, len(hits))
        return [SearchResult(exchange=ex, distance=d) for ex, d in hits[:limit]]


def format_results(results: list[SearchResult]) -> str:
    """Plain-text listing of results."""
    if not results:
        return "No results found."

    lines = [f"Found {len(results)} relevant conversation(s):", ""]
    for i, result in enumerate(results, start=1):
        lines.append(f"{i}. [{result.exchange.project}, {result.date}]")
        lines.append(f'   "{result.snippet}"')
        lines.append(f"   File: {result.location}")
        lines.append(f"   Similarity: {result.similarity * 100:.1f}%")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
