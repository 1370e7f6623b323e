"""Shared test fixtures for recollect."""

from __future__ import annotations

import sqlite3

import pytest

from recollect.build.archive import ArchiveManager
from recollect.build.runner import Indexer
from recollect.core.config import IndexConfig
from recollect.core.logging import RecollectLogger
from recollect.search.store import IndexStore
from recollect.transforms.summarize import HierarchicalSummarizer
from tests.helpers.transcripts import DIMS, FakeEmbedder, FakeLLMClient


def pytest_report_header(config):
    """Store-backed tests error out, not skip, when extensions cannot load."""
    if not hasattr(sqlite3.Connection, "enable_load_extension"):
        return (
            "WARNING: this Python's sqlite3 cannot load extensions; "
            "every test using the sqlite-vec store will error"
        )
    return None


@pytest.fixture
def index_config(tmp_path) -> IndexConfig:
    """IndexConfig rooted entirely under tmp_path."""
    (tmp_path / "projects").mkdir()
    return IndexConfig(
        transcript_root=tmp_path / "projects",
        archive_root=tmp_path / "archive",
        db_path=tmp_path / "index.db",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def store(index_config):
    s = IndexStore(index_config.db_path, dimensions=DIMS)
    yield s
    s.close()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def indexer(index_config, store, fake_embedder, fake_llm) -> Indexer:
    """Indexer wired to a real store and archive with fake services."""
    return Indexer(
        index_config,
        store=store,
        embedder=fake_embedder,
        summarizer=HierarchicalSummarizer(fake_llm),
        archive=ArchiveManager(index_config.archive_root),
        run_logger=RecollectLogger(log_dir=index_config.log_dir),
    )
