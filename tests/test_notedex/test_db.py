"""Unit tests for notedex.db.NoteDB."""

import polars as pl
import pytest

from notedex.db import NoteDB
from notedex.store import IndexStore


@pytest.fixture()
def db(make_record):
    store = IndexStore()
    store.upsert(make_record("a", title="A", updated="2024-01-01", tags=["python", "Web"], content="one two three"))
    store.upsert(make_record("b", title="B", updated="2024-03-01", tags=["python"], content="four  five\nsix"))
    store.upsert(make_record("c", title="C", updated="2024-02-01", content="   "))
    with NoteDB(store) as note_db:
        yield note_db


class TestQuery:
    def test_returns_polars(self, db):
        df = db.query("SELECT id FROM notes WHERE updated > ? ORDER BY id", ["2024-01-15"])
        assert isinstance(df, pl.DataFrame)
        assert df["id"].to_list() == ["b", "c"]


class TestTableView:
    def test_default_order_is_newest_first(self, db):
        df = db.table_view()
        assert df.columns == ["id", "title", "path", "updated", "tags"]
        assert df["id"].to_list() == ["b", "c", "a"]

    def test_filter_tag_case_insensitive(self, db):
        assert db.table_view(filter_tag="WEB")["id"].to_list() == ["a"]
        assert db.table_view(filter_tag="python")["id"].to_list() == ["b", "a"]

    def test_custom_columns_and_order(self, db):
        df = db.table_view(columns=["id"], order_by="id ASC")
        assert df.columns == ["id"]
        assert df["id"].to_list() == ["a", "b", "c"]

    @pytest.mark.parametrize("order_by", ["id; DROP TABLE notes", "id DESC, title", ""])
    def test_bad_order_by(self, db, order_by):
        with pytest.raises(ValueError):
            db.table_view(order_by=order_by)

    def test_bad_column(self, db):
        with pytest.raises(ValueError):
            db.table_view(columns=["id", "1=1 --"])


class TestAggregates:
    def test_tag_counts(self, db):
        counts = db.tag_counts()
        assert counts.rows() == [("python", 2), ("Web", 1)]

    def test_tag_counts_limit(self, db):
        assert db.tag_counts(limit=1).height == 1

    def test_stats(self, db):
        stats = db.stats()
        assert stats.total_notes == 3
        assert stats.total_tags == 2
        assert stats.total_words == 6
        assert stats.top_tags == [("python", 2), ("Web", 1)]
        assert stats.to_dict() == {
            "totalNotes": 3,
            "totalTags": 2,
            "totalWords": 6,
            "topTags": [{"tag": "python", "count": 2}, {"tag": "Web", "count": 1}],
        }

    def test_empty_store(self):
        with NoteDB(IndexStore()) as empty:
            stats = empty.stats()
        assert (stats.total_notes, stats.total_tags, stats.total_words) == (0, 0, 0)
        assert stats.top_tags == []

    def test_refresh_picks_up_changes(self, make_record):
        store = IndexStore()
        with NoteDB(store) as note_db:
            assert note_db.stats().total_notes == 0
            store.upsert(make_record("x"))
            note_db.refresh(store)
            assert note_db.stats().total_notes == 1
