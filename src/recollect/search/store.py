"""SQLite + sqlite-vec index of exchanges and their embeddings."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import sqlite_vec

from recollect.core.errors import StoreError
from recollect.core.models import Exchange

logger = logging.getLogger(__name__)

# vec0 rejects larger k values
MAX_K = 4096

_EXCHANGE_COLUMNS = (
    "id, project, timestamp, user_message, assistant_message, "
    "archive_path, line_start, line_end"
)


def _row_to_exchange(row: sqlite3.Row) -> Exchange:
    return Exchange(
        id=row["id"],
        project=row["project"],
        timestamp=row["timestamp"],
        user_message=row["user_message"],
        assistant_message=row["assistant_message"],
        archive_path=row["archive_path"],
        line_start=row["line_start"],
        line_end=row["line_end"],
    )


class IndexStore:
    """Exchange records keyed by id, each with exactly one vector.

    Rows live in ``exchanges``; vectors live in the ``vec_exchanges`` vec0
    virtual table under the same id. Every write touches both inside one
    transaction. The database runs in WAL mode: one writer, many readers.
    """

    def __init__(self, db_path: str | Path, dimensions: int = 384):
        self.db_path = Path(db_path)
        self.dimensions = dimensions
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path))
                conn.row_factory = sqlite3.Row
                conn.enable_load_extension(True)
                sqlite_vec.load(conn)
                conn.enable_load_extension(False)
                conn.execute("PRAGMA journal_mode=WAL")
                self._create_schema(conn)
            except (sqlite3.Error, OSError, AttributeError) as exc:
                raise StoreError(f"Cannot open index store at {self.db_path}: {exc}") from exc
            self._conn = conn
        return self._conn

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS exchanges (
                    id TEXT PRIMARY KEY,
                    project TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    user_message TEXT NOT NULL,
                    assistant_message TEXT NOT NULL,
                    archive_path TEXT NOT NULL,
                    line_start INTEGER NOT NULL,
                    line_end INTEGER NOT NULL,
                    content_hash TEXT NOT NULL,
                    indexed_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_exchanges_timestamp "
                "ON exchanges(timestamp DESC)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_exchanges_archive_path "
                "ON exchanges(archive_path)"
            )
            conn.execute(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS vec_exchanges USING vec0("
                f"id TEXT PRIMARY KEY, "
                f"embedding float[{self.dimensions}] distance_metric=cosine)"
            )

    # -- Writes --

    def upsert(self, exchange: Exchange, embedding: list[float]) -> None:
        """Insert or replace one exchange and its vector."""
        if len(embedding) != self.dimensions:
            raise StoreError(
                f"Embedding for {exchange.id} has {len(embedding)} dims, "
                f"store expects {self.dimensions}"
            )
        conn = self._get_conn()
        with conn:
            conn.execute(
                f"INSERT OR REPLACE INTO exchanges ({_EXCHANGE_COLUMNS}, content_hash, indexed_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    exchange.id,
                    exchange.project,
                    exchange.timestamp,
                    exchange.user_message,
                    exchange.assistant_message,
                    exchange.archive_path,
                    exchange.line_start,
                    exchange.line_end,
                    exchange.content_hash,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            # vec0 has no INSERT OR REPLACE
            conn.execute("DELETE FROM vec_exchanges WHERE id = ?", (exchange.id,))
            conn.execute(
                "INSERT INTO vec_exchanges (id, embedding) VALUES (?, ?)",
                (exchange.id, sqlite_vec.serialize_float32(embedding)),
            )

    def delete(self, exchange_id: str) -> bool:
        conn = self._get_conn()
        with conn:
            cur = conn.execute("DELETE FROM exchanges WHERE id = ?", (exchange_id,))
            conn.execute("DELETE FROM vec_exchanges WHERE id = ?", (exchange_id,))
        return cur.rowcount > 0

    def delete_archive(self, archive_path: str | Path) -> int:
        """Delete every record whose provenance is ``archive_path``."""
        ids = self.ids_for_archive(archive_path)
        if not ids:
            return 0
        conn = self._get_conn()
        with conn:
            conn.executemany("DELETE FROM vec_exchanges WHERE id = ?", [(i,) for i in ids])
            conn.execute("DELETE FROM exchanges WHERE archive_path = ?", (str(archive_path),))
        logger.debug("Deleted %d records for %s", len(ids), archive_path)
        return len(ids)

    # -- Reads --

    def get(self, exchange_id: str) -> Exchange | None:
        row = self._get_conn().execute(
            f"SELECT {_EXCHANGE_COLUMNS} FROM exchanges WHERE id = ?", (exchange_id,)
        ).fetchone()
        return _row_to_exchange(row) if row else None

    def content_hash(self, exchange_id: str) -> str | None:
        """Stored content hash, or None when the id is not indexed."""
        row = self._get_conn().execute(
            "SELECT content_hash FROM exchanges WHERE id = ?",
            (exchange_id,),
        ).fetchone()
        return row["content_hash"] if row else None

    def ids_for_archive(self, archive_path: str | Path) -> set[str]:
        rows = self._get_conn().execute(
            "SELECT id FROM exchanges WHERE archive_path = ?", (str(archive_path),)
        ).fetchall()
        return {row["id"] for row in rows}

    def hashes_for_archive(self, archive_path: str | Path) -> dict[str, str]:
        """Map of exchange id to stored content hash for one archive path."""
        rows = self._get_conn().execute(
            "SELECT id, content_hash FROM exchanges WHERE archive_path = ?",
            (str(archive_path),),
        ).fetchall()
        return {row["id"]: row["content_hash"] for row in rows}

    def archive_paths(self) -> dict[str, int]:
        """Every distinct archive path referenced by the index, with its record count."""
        rows = self._get_conn().execute(
            "SELECT archive_path, COUNT(*) AS n FROM exchanges GROUP BY archive_path"
        ).fetchall()
        return {row["archive_path"]: row["n"] for row in rows}

    def project_counts(self) -> dict[str, int]:
        rows = self._get_conn().execute(
            "SELECT project, COUNT(*) AS n FROM exchanges GROUP BY project ORDER BY project"
        ).fetchall()
        return {row["project"]: row["n"] for row in rows}

    def count(self) -> int:
        return self._get_conn().execute("SELECT COUNT(*) FROM exchanges").fetchone()[0]

    def recent(self, limit: int = 20, project: str | None = None) -> list[Exchange]:
        """Most recent exchanges by timestamp."""
        sql = f"SELECT {_EXCHANGE_COLUMNS} FROM exchanges"
        params: list = []
        if project:
            sql += " WHERE project = ?"
            params.append(project)
        sql += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)
        rows = self._get_conn().execute(sql, params).fetchall()
        return [_row_to_exchange(r) for r in rows]

    def query(self, vector: list[float], k: int = 10) -> list[tuple[Exchange, float]]:
        """The ``k`` nearest exchanges to ``vector``, nearest first, with cosine distance."""
        if len(vector) != self.dimensions:
            raise StoreError(
                f"Query vector has {len(vector)} dims, store expects {self.dimensions}"
            )
        k = max(0, min(k, MAX_K))
        if k == 0:
            return []
        rows = self._get_conn().execute(
            "SELECT e.id, e.project, e.timestamp, e.user_message, e.assistant_message, "
            "e.archive_path, e.line_start, e.line_end, v.distance AS distance "
            "FROM (SELECT id, distance FROM vec_exchanges "
            "      WHERE embedding MATCH ? AND k = ?) v "
            "JOIN exchanges e ON e.id = v.id "
            "ORDER BY v.distance",
            (sqlite_vec.serialize_float32(vector), k),
        ).fetchall()
        return [(_row_to_exchange(r), float(r["distance"])) for r in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> IndexStore:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
