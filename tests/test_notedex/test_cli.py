"""Tests for the notedex CLI (typer.testing)."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from notedex.cli import app

runner = CliRunner()


@pytest.fixture()
def cli(tmp_path: Path, notes_dir: Path, monkeypatch):
    """Invoke the CLI against the sample notes folder and a temp index."""
    monkeypatch.chdir(tmp_path)
    for name in ("NOTES_DIR", "INDEX_PATH", "BACKEND", "SEARCH_LIMIT", "EXPORT_DIR", "DEBOUNCE_SECONDS"):
        monkeypatch.delenv(f"NOTEDEX_{name}", raising=False)
    index_path = tmp_path / "notes-index.json"

    def _invoke(*args: str, backend: str = "json"):
        return runner.invoke(
            app,
            ["--notes", str(notes_dir), "--index", str(index_path), "--backend", backend, *args],
        )

    _invoke.index_path = index_path
    return _invoke


class TestIndexCommand:
    def test_builds_index_and_reports(self, cli):
        result = cli("index")
        assert result.exit_code == 0, result.output
        assert "Total notes: 3" in result.output
        assert "broken.md" in result.output
        data = json.loads(cli.index_path.read_text(encoding="utf-8"))
        assert [d["id"] for d in data] == ["gamma", "beta", "alpha"]

    def test_creates_missing_notes_dir(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        notes = tmp_path / "fresh"
        result = runner.invoke(app, ["--notes", str(notes), "--index", str(tmp_path / "i.json"), "index"])
        assert result.exit_code == 0, result.output
        assert (notes / "welcome.md").exists()
        assert "Total notes: 1" in result.output

    def test_duckdb_backend(self, cli, tmp_path: Path):
        result = cli("index", backend="duckdb")
        assert result.exit_code == 0, result.output
        result = cli("search", "zebras", "--json", backend="duckdb")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["total"] == 1

    def test_duckdb_default_index_file(self, tmp_path: Path, notes_dir: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for name in ("NOTES_DIR", "INDEX_PATH", "BACKEND"):
            monkeypatch.delenv(f"NOTEDEX_{name}", raising=False)
        base = ["--notes", str(notes_dir), "--backend", "duckdb"]
        result = runner.invoke(app, [*base, "index"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "notes-index.duckdb").exists()
        assert not (tmp_path / "notes-index.json").exists()
        # the first connection was closed, so the file opens again
        result = runner.invoke(app, [*base, "stats", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["totalNotes"] == 3

    def test_bad_backend(self, cli):
        result = cli("index", backend="sqlite")
        assert result.exit_code == 1


class TestSearchCommand:
    def test_json_output(self, cli):
        cli("index")
        result = cli("search", "zebras", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["query"] == "zebras"
        assert data["total"] == 1
        assert data["results"][0]["id"] == "alpha"
        assert "[zebras]" in data["results"][0]["excerpt"]

    def test_filters_only(self, cli):
        cli("index")
        result = cli("search", "--tag", "a,b", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [r["id"] for r in data["results"]] == ["gamma"]
        assert data["filters"]["tags"] == ["a", "b"]

    def test_paging_options(self, cli):
        cli("index")
        result = cli("search", "note", "--limit", "1", "--offset", "1", "--json")
        data = json.loads(result.stdout)
        assert data["total"] == 3
        assert data["count"] == 1
        assert data["filters"]["offset"] == 1

    def test_plain_output(self, cli):
        cli("index")
        result = cli("search", "zebras")
        assert result.exit_code == 0, result.output
        assert "Found 1 result(s)" in result.output
        assert "[zebras]" in result.output

    def test_no_results(self, cli):
        cli("index")
        assert "No results." in cli("search", "nothing-like-this").output

    def test_empty_query_rejected(self, cli):
        cli("index")
        result = cli("search")
        assert result.exit_code == 1

    def test_missing_index(self, cli):
        result = cli("search", "zebras")
        assert result.exit_code == 1


class TestOtherCommands:
    def test_list(self, cli):
        cli("index")
        result = cli("list", "--tag", "b")
        assert result.exit_code == 0, result.output
        assert "gamma" in result.output
        assert "beta" in result.output
        assert "alpha" not in result.output

    def test_stats_json(self, cli):
        cli("index")
        result = cli("stats", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["totalNotes"] == 3
        assert data["totalTags"] == 2
        assert data["topTags"] == [{"tag": "a", "count": 2}, {"tag": "b", "count": 2}]

    def test_export(self, cli, tmp_path: Path):
        cli("index")
        result = cli("export", "--tag", "a", "--dir", str(tmp_path / "out"))
        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "out" / "notes-a.json").read_text(encoding="utf-8"))
        assert [d["id"] for d in data] == ["gamma", "alpha"]

    def test_graph(self, cli, tmp_path: Path):
        cli("index")
        out = tmp_path / "graph.json"
        result = cli("graph", "--out", str(out))
        assert result.exit_code == 0, result.output
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert payload["meta"]["count"] == 3
        # alpha -> beta and beta -> alpha; alpha -> missing is dropped
        assert payload["meta"]["links"] == 2
