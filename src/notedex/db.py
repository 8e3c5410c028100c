"""NoteDB: SQL views over a snapshot of the note index.

Uses DuckDB (in-memory) as a query engine over the indexed notes and returns
:mod:`polars` DataFrames for tabular output.

Usage::

    db = NoteDB(store)

    # Free-form SQL
    df = db.query("SELECT id, title FROM notes WHERE 'python' = ANY(tags)")

    # Pre-built views
    table  = db.table_view(filter_tag="python", order_by="updated DESC")
    counts = db.tag_counts()
    stats  = db.stats()
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import duckdb
import polars as pl

if TYPE_CHECKING:
    from notedex.store import IndexStore

TOP_TAGS = 10

_ORDER_RE = re.compile(r"^\s*(\w+)(\s+(ASC|DESC))?\s*$", re.IGNORECASE)


@dataclass
class IndexStats:
    total_notes: int
    total_tags: int
    total_words: int
    top_tags: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNotes": self.total_notes,
            "totalTags": self.total_tags,
            "totalWords": self.total_words,
            "topTags": [{"tag": t, "count": c} for t, c in self.top_tags],
        }


class NoteDB:
    """In-memory DuckDB database over the current store contents."""

    def __init__(self, store: "IndexStore") -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(store)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, store: "IndexStore") -> None:
        """(Re-)populate the database from a fresh snapshot of *store*."""
        self._create_schema()
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
                [t.lower() for t in r.tags],
            )
            for position, r in enumerate(store.snapshot())
        ]
        if rows:
            self.conn.executemany("INSERT INTO notes VALUES (?,?,?,?,?,?,?,?,?,?)", rows)

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                position INTEGER,
                id       VARCHAR PRIMARY KEY,
                path     VARCHAR,
                title    VARCHAR,
                created  VARCHAR,
                updated  VARCHAR,
                tags     VARCHAR[],
                links    VARCHAR[],
                content  TEXT,
                tags_lc  VARCHAR[]
            )
        """)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str, params: list[Any] | None = None) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql, params or []).pl()

    # ------------------------------------------------------------------
    # Pre-built views
    # ------------------------------------------------------------------

    def table_view(
        self,
        *,
        filter_tag: str | None = None,
        columns: list[str] | None = None,
        order_by: str = "position",
    ) -> pl.DataFrame:
        """Return notes as a Polars DataFrame, optionally filtered by tag.

        Parameters
        ----------
        filter_tag:
            Only include notes carrying this tag (case-insensitive).
        columns:
            Which columns to include.  Defaults to ``id, title, path, updated, tags``.
        order_by:
            ``<column> [ASC|DESC]``; the default keeps listing order
            (newest ``updated`` first).
        """
        cols = columns or ["id", "title", "path", "updated", "tags"]
        if not all(c.isidentifier() for c in cols):
            raise ValueError(f"Invalid column list: {cols!r}")
        match = _ORDER_RE.match(order_by)
        if match is None:
            raise ValueError(f"Invalid order_by: {order_by!r}")

        where = ""
        params: list[Any] = []
        if filter_tag:
            where = "WHERE list_contains(tags_lc, ?)"
            params.append(filter_tag.lower())
        sql = f"SELECT {', '.join(cols)} FROM notes {where} ORDER BY {match.group(0).strip()}, position"
        return self.conn.execute(sql, params).pl()

    def tag_counts(self, limit: int | None = None) -> pl.DataFrame:
        """Return a tag → count table sorted by frequency, then tag."""
        sql = """
            SELECT tag, COUNT(*) AS note_count
            FROM (SELECT unnest(tags) AS tag FROM notes)
            GROUP BY tag
            ORDER BY note_count DESC, tag
        """
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return self.conn.execute(sql).pl()

    def stats(self) -> IndexStats:
        total_notes, total_words = self.conn.execute(
            """
            SELECT
                COUNT(*),
                COALESCE(SUM(
                    CASE WHEN trim(content) = '' THEN 0
                         ELSE len(regexp_split_to_array(trim(content), '\\s+'))
                    END
                ), 0)
            FROM notes
            """
        ).fetchone()
        total_tags = self.conn.execute(
            "SELECT COUNT(DISTINCT tag) FROM (SELECT unnest(tags) AS tag FROM notes)"
        ).fetchone()[0]
        top = self.tag_counts(limit=TOP_TAGS)
        return IndexStats(
            total_notes=int(total_notes),
            total_tags=int(total_tags),
            total_words=int(total_words),
            top_tags=[(row["tag"], int(row["note_count"])) for row in top.to_dicts()],
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "NoteDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
