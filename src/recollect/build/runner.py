"""Indexing orchestrator: scan, archive, parse, summarize, embed, store.

Work is strictly sequential, one transcript at a time. ``iter_index`` yields
after every transcript, so a caller can stop between transcripts and keep
everything written so far.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from recollect.build.archive import ArchiveManager
from recollect.build.llm_client import LLMClient
from recollect.core.config import IndexConfig
from recollect.core.errors import ConfigError, StoreError, TranscriptNotFoundError
from recollect.core.logging import RecollectLogger, Verbosity
from recollect.core.models import Exchange, TranscriptFile
from recollect.search.embeddings import EmbeddingProvider
from recollect.search.store import IndexStore
from recollect.sources.transcript import parse_transcript
from recollect.transforms.summarize import HierarchicalSummarizer

logger = logging.getLogger(__name__)


@dataclass
class TranscriptResult:
    """Outcome of indexing one transcript."""

    project: str
    archive_path: Path
    status: str = "indexed"  # "indexed", "empty", "failed"
    exchanges_indexed: int = 0
    exchanges_skipped: int = 0
    archived: bool = False
    summarized: bool = False
    error: str | None = None


@dataclass
class IndexStats:
    """Summary of an indexing run."""

    results: list[TranscriptResult] = field(default_factory=list)
    total_time: float = 0.0
    llm_calls: int = 0
    embedding_calls: int = 0
    run_log: dict = field(default_factory=dict)

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def transcripts(self) -> int:
        return len(self.results)

    @property
    def indexed(self) -> int:
        return self._count("indexed")

    @property
    def empty(self) -> int:
        return self._count("empty")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def archived(self) -> int:
        return sum(1 for r in self.results if r.archived)

    @property
    def summarized(self) -> int:
        return sum(1 for r in self.results if r.summarized)

    @property
    def exchanges_indexed(self) -> int:
        return sum(r.exchanges_indexed for r in self.results)

    @property
    def exchanges_skipped(self) -> int:
        return sum(r.exchanges_skipped for r in self.results)


class Indexer:
    """Turns the transcript tree into archived, summarized, embedded records."""

    def __init__(
        self,
        config: IndexConfig,
        store: IndexStore,
        embedder: EmbeddingProvider,
        summarizer: HierarchicalSummarizer,
        archive: ArchiveManager | None = None,
        run_logger: RecollectLogger | None = None,
    ):
        self.config = config
        self.store = store
        self.embedder = embedder
        self.summarizer = summarizer
        self.archive = archive or ArchiveManager(config.archive_root)
        self.run_logger = run_logger or RecollectLogger(log_dir=config.log_dir)

    # -- Scanning --

    def discover(self, project: str | None = None) -> list[TranscriptFile]:
        """Every transcript under the transcript root, minus excluded projects."""
        root = self.config.transcript_root
        if not root.is_dir():
            raise ConfigError(f"Transcript root does not exist: {root}")

        excluded = set(self.config.excluded_projects)
        if project:
            project_dirs = [root / project] if (root / project).is_dir() else []
        else:
            project_dirs = sorted(p for p in root.iterdir() if p.is_dir())

        files: list[TranscriptFile] = []
        for project_dir in project_dirs:
            if project_dir.name in excluded:
                logger.debug("Skipping excluded project %s", project_dir.name)
                continue
            for source in sorted(project_dir.glob("*.jsonl")):
                files.append(self.transcript_for(project_dir.name, source.name))
        return files

    def transcript_for(self, project: str, filename: str) -> TranscriptFile:
        return TranscriptFile(
            project=project,
            source_path=self.config.transcript_root / project / filename,
            archive_path=self.archive.archive_path_for(project, filename),
        )

    def find_session(self, session_id: str) -> TranscriptFile | None:
        for tf in self.discover():
            if session_id in tf.source_path.name:
                return tf
        return None

    # -- Per-transcript unit --

    def index_transcript(
        self,
        tf: TranscriptFile,
        *,
        summarize: bool = True,
        force: bool = False,
    ) -> TranscriptResult:
        """Archive, parse, summarize and embed one transcript.

        Safe to repeat: archiving copies once, summaries are written only
        when absent, and unchanged exchanges are not re-embedded unless
        ``force`` is set.
        """
        result = TranscriptResult(project=tf.project, archive_path=tf.archive_path)

        if tf.source_path.exists():
            _, result.archived = self.archive.archive(tf.source_path, tf.project)
            if result.archived:
                self.run_logger.transcript_archived(tf.project, tf.archive_path)

        exchanges = parse_transcript(tf.parse_path, tf.project, archive_path=tf.archive_path)
        if not exchanges:
            result.status = "empty"
            self.run_logger.transcript_empty(tf.project, tf.archive_path)
            return result

        if summarize and not self.archive.has_summary(tf.archive_path):
            result.summarized = self.write_summary(tf.archive_path, exchanges)

        pending: list[Exchange] = []
        for exchange in exchanges:
            if not force and self.store.content_hash(exchange.id) == exchange.content_hash:
                result.exchanges_skipped += 1
            else:
                pending.append(exchange)

        if pending:
            max_chars = self.embedder.config.max_chars
            vectors = self.embedder.embed_batch([ex.embedding_text(max_chars) for ex in pending])
            for exchange, vector in zip(pending, vectors):
                self.store.upsert(exchange, vector)
            result.exchanges_indexed = len(pending)

        self.run_logger.transcript_indexed(
            tf.project, tf.archive_path, result.exchanges_indexed, result.exchanges_skipped,
        )
        return result

    def write_summary(self, archive_path: Path, exchanges: list[Exchange]) -> bool:
        """Summarize and write the summary file. Failures are logged, not raised."""
        summary_path = self.archive.summary_path_for(archive_path)
        try:
            summary = self.summarizer.summarize(exchanges)
            self.archive.write_summary(archive_path, summary)
        except Exception as exc:
            logger.debug("Summary failed for %s", archive_path, exc_info=True)
            self.run_logger.summary_failed(summary_path, str(exc))
            return False
        self.run_logger.summary_written(summary_path, len(summary.split()))
        return True

    # -- Entry modes --

    def iter_index(
        self,
        project: str | None = None,
        limit: int | None = None,
        only_unprocessed: bool = False,
        force: bool = False,
        transcripts: list[TranscriptFile] | None = None,
    ) -> Iterator[TranscriptResult]:
        """Index transcripts one by one, yielding each result.

        ``limit`` caps how many transcripts are processed. Closing the
        generator early finishes the run log cleanly.
        """
        files = transcripts if transcripts is not None else self.discover(project)
        if only_unprocessed:
            files = [tf for tf in files if not self.archive.has_summary(tf.archive_path)]
        if limit is not None:
            files = files[:limit]

        mode = "unprocessed" if only_unprocessed else (project or "all")
        self.run_logger.run_start(mode, len(files))
        try:
            for tf in files:
                try:
                    result = self.index_transcript(tf, force=force)
                except (StoreError, ConfigError):
                    raise
                except Exception as exc:
                    logger.debug("Indexing failed for %s", tf.source_path, exc_info=True)
                    self.run_logger.transcript_failed(tf.project, tf.archive_path, str(exc))
                    result = TranscriptResult(
                        project=tf.project,
                        archive_path=tf.archive_path,
                        status="failed",
                        error=str(exc),
                    )
                yield result
        finally:
            self.run_logger.run_finish()

    def _collect(self, results: Iterator[TranscriptResult]) -> IndexStats:
        start = time.time()
        llm_before = self.summarizer.calls
        embed_before = self.embedder.calls
        stats = IndexStats(results=list(results))
        stats.total_time = time.time() - start
        stats.llm_calls = self.summarizer.calls - llm_before
        stats.embedding_calls = self.embedder.calls - embed_before
        stats.run_log = self.run_logger.run_log.to_dict()
        return stats

    def index_all(self, limit: int | None = None, force: bool = False) -> IndexStats:
        """Index every transcript of every non-excluded project."""
        return self._collect(self.iter_index(limit=limit, force=force))

    def index_project(
        self, project: str, limit: int | None = None, force: bool = False,
    ) -> IndexStats:
        return self._collect(self.iter_index(project=project, limit=limit, force=force))

    def index_session(self, session_id: str, force: bool = False) -> IndexStats:
        """Index the single transcript whose filename contains ``session_id``."""
        tf = self.find_session(session_id)
        if tf is None:
            raise TranscriptNotFoundError(f"No transcript found for session {session_id!r}")
        return self._collect(self.iter_index(transcripts=[tf], force=force))

    def index_unprocessed(self) -> IndexStats:
        """Index only transcripts that have no summary yet."""
        return self._collect(self.iter_index(only_unprocessed=True))


def build_indexer(
    config: IndexConfig,
    verbosity: Verbosity = Verbosity.DEFAULT,
    run_logger: RecollectLogger | None = None,
) -> Indexer:
    """Wire up an Indexer with real services from ``config``."""
    run_logger = run_logger or RecollectLogger(verbosity=verbosity, log_dir=config.log_dir)
    store = IndexStore(config.db_path, dimensions=config.embedding.dimensions)
    embedder = EmbeddingProvider(config.embedding)
    summarizer = HierarchicalSummarizer(
        LLMClient(config.llm, run_logger=run_logger),
        chunk_size=config.chunk_size,
        direct_threshold=config.direct_summary_threshold,
    )
    return Indexer(
        config,
        store=store,
        embedder=embedder,
        summarizer=summarizer,
        run_logger=run_logger,
    )
