"""recollect - a searchable, summarized archive of conversation transcripts.

Usage:
    from recollect import IndexConfig, build_indexer

    config = IndexConfig.from_settings()
    indexer = build_indexer(config)
    stats = indexer.index_all()
"""

from recollect.build.runner import IndexStats, Indexer, TranscriptResult, build_indexer
from recollect.core.config import EmbeddingConfig, IndexConfig, LLMConfig
from recollect.core.models import Exchange, TranscriptFile

__all__ = [
    "EmbeddingConfig",
    "Exchange",
    "IndexConfig",
    "IndexStats",
    "Indexer",
    "LLMConfig",
    "TranscriptFile",
    "TranscriptResult",
    "build_indexer",
]
