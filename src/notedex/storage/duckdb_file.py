"""DuckDB storage backend.

Keeps the index in a ``notes`` table inside a DuckDB database file.  A
``position`` column records the save order so :meth:`DuckDBStorage.load`
hands records back exactly as they were saved.

Environment variables (direct kwargs take precedence):
    NOTEDEX_DUCKDB_PATH – database file used when no path is given
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path

import duckdb

from notedex.errors import PersistenceFailure
from notedex.note import RECORD_FIELDS, NoteRecord

logger = logging.getLogger(__name__)


class DuckDBStorage:
    """Index persistence backed by a local DuckDB file."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = str(db_path or os.getenv("NOTEDEX_DUCKDB_PATH", "notes-index.duckdb"))
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
            self._ensure_schema()
        except (OSError, duckdb.Error) as exc:
            raise PersistenceFailure(f"Failed to open index database {self._db_path}: {exc}") from exc

    def _ensure_schema(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                position     INTEGER NOT NULL,
                id           VARCHAR NOT NULL,
                path         VARCHAR NOT NULL,
                title        VARCHAR NOT NULL,
                created      VARCHAR NOT NULL,
                updated      VARCHAR NOT NULL,
                tags         VARCHAR[],
                links        VARCHAR[],
                content      TEXT,
                content_hash VARCHAR
            )
        """)

    # ------------------------------------------------------------------
    # IndexStorage
    # ------------------------------------------------------------------

    def load(self) -> list[NoteRecord]:
        try:
            rows = self.conn.execute(
                f"SELECT {', '.join(RECORD_FIELDS)} FROM notes ORDER BY position"
            ).fetchall()
        except duckdb.Error as exc:
            raise PersistenceFailure(f"Failed to load index from {self._db_path}: {exc}") from exc
        return [NoteRecord.from_dict(dict(zip(RECORD_FIELDS, row))) for row in rows]

    def save(self, records: Sequence[NoteRecord]) -> None:
        rows = [
            (
                position,
                r.id,
                r.path,
                r.title,
                r.created,
                r.updated,
                list(r.tags),
                list(r.links),
                r.content,
                r.content_hash,
            )
            for position, r in enumerate(records)
        ]
        try:
            self.conn.execute("BEGIN TRANSACTION")
            self.conn.execute("DELETE FROM notes")
            if rows:
                self.conn.executemany(
                    f"INSERT INTO notes (position, {', '.join(RECORD_FIELDS)}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
            self.conn.execute("COMMIT")
        except duckdb.Error as exc:
            try:
                self.conn.execute("ROLLBACK")
            except duckdb.Error:
                logger.debug("Rollback after failed save also failed", exc_info=True)
            raise PersistenceFailure(f"Failed to save index to {self._db_path}: {exc}") from exc
        logger.info("Saved %d notes to %s", len(records), self._db_path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DuckDBStorage":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
