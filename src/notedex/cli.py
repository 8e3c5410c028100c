"""Typer-based CLI for notedex."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from notedex.config import NotedexConfig, load_config, open_storage
from notedex.db import NoteDB
from notedex.errors import InvalidQuery, PersistenceFailure
from notedex.export import export_by_tags
from notedex.graph import graph_payload
from notedex.indexer import Indexer
from notedex.query import QueryEngine, SearchOptions
from notedex.sources import DirectorySource, NoteWatcher, ensure_notes_dir
from notedex.store import IndexStore

app = typer.Typer(
    name="notedex",
    help="notedex - index, search and export a folder of Markdown notes",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def _split_tags(value: Optional[str]) -> list[str]:
    return [t.strip() for t in (value or "").split(",") if t.strip()]


def _config(ctx: typer.Context) -> NotedexConfig:
    return ctx.obj["config"]


def _fail(exc: Exception) -> typer.Exit:
    err_console.print(f"[red]{exc}[/red]")
    return typer.Exit(code=1)


@contextmanager
def _open_store(
    config: NotedexConfig, *, require_index: bool = True, load: bool = True
) -> Iterator[IndexStore]:
    """Yield an :class:`IndexStore` on the configured backend; close it afterwards."""
    if require_index and not config.index_file.exists():
        err_console.print(
            f"[red]Index not found:[/red] {config.index_file}. Run [bold]notedex index[/bold] first."
        )
        raise typer.Exit(code=1)
    try:
        store = IndexStore(open_storage(config), debounce_seconds=config.debounce_seconds)
    except PersistenceFailure as exc:
        raise _fail(exc) from exc
    failed = False
    try:
        if load:
            store.load()
        yield store
    except PersistenceFailure as exc:
        failed = True
        raise _fail(exc) from exc
    finally:
        try:
            store.close()
        except PersistenceFailure as exc:
            # the same error was already reported above
            if not failed:
                raise _fail(exc) from exc


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to notedex.toml (default: search upwards from cwd)"
    ),
    notes_dir: Optional[Path] = typer.Option(None, "--notes", help="Notes directory"),
    index_path: Optional[Path] = typer.Option(None, "--index", help="Index file"),
    backend: Optional[str] = typer.Option(None, "--backend", help="Storage backend: json or duckdb"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Load configuration and set up logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )
    try:
        config = load_config(
            config_file,
            notes_dir=notes_dir.resolve() if notes_dir else None,
            index_path=index_path.resolve() if index_path else None,
            backend=backend,
        )
    except (OSError, ValueError) as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    ctx.obj = {"config": config}


@app.command()
def index(ctx: typer.Context):
    """Rebuild the index from every note in the notes directory."""
    config = _config(ctx)
    if ensure_notes_dir(config.notes_dir):
        console.print(f"[yellow]Created {config.notes_dir} with a sample note[/yellow]")

    with _open_store(config, require_index=False, load=False) as store:
        report = Indexer(store).rebuild(DirectorySource(config.notes_dir))
        with NoteDB(store) as db:
            stats = db.stats()

    for failure in report.failures:
        console.print(f"[red]x[/red] {failure}")
    for duplicate in report.duplicates:
        console.print(f"[yellow]![/yellow] {duplicate}")
    console.print()
    console.print("[bold]Summary[/bold]")
    console.print(f"  Total notes: {stats.total_notes}")
    console.print(f"  Total tags: {stats.total_tags}")
    console.print(f"  Total words: {stats.total_words}")
    if stats.top_tags:
        console.print("  Top tags: " + ", ".join(f"{t}({c})" for t, c in stats.top_tags))


@app.command()
def search(
    ctx: typer.Context,
    query: Optional[list[str]] = typer.Argument(None, help="Query terms (AND / OR / NOT / -term)"),
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Comma-separated tags, all required"),
    after: Optional[str] = typer.Option(None, "--after", help="Updated on or after YYYY-MM-DD"),
    before: Optional[str] = typer.Option(None, "--before", help="Updated on or before YYYY-MM-DD"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Page size"),
    offset: int = typer.Option(0, "--offset", help="Results to skip"),
    as_json: bool = typer.Option(False, "--json", help="Print only JSON"),
):
    """Search the index."""
    config = _config(ctx)
    options = SearchOptions(
        tags=tuple(_split_tags(tag)),
        after=after or "",
        before=before or "",
        limit=limit if limit is not None else config.search_limit,
        offset=offset,
    )
    with _open_store(config) as store:
        try:
            response = QueryEngine(store).search(" ".join(query or []), options)
        except InvalidQuery as exc:
            err_console.print(f"[red]Invalid query:[/red] {exc}")
            raise typer.Exit(code=1) from exc

    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
        return
    if not response.results:
        console.print("No results.")
        return
    console.print(
        f"Found {response.total} result(s). Showing {response.count} (offset {options.offset})"
    )
    for hit in response.results:
        tags = f"  tags:{','.join(hit.tags)}" if hit.tags else ""
        console.print(f"\n - [{hit.id}] {hit.title} ({hit.path})  updated:{hit.updated}{tags}", markup=False)
        if hit.excerpt:
            console.print(f"   {hit.excerpt}", markup=False)


@app.command(name="list")
def list_notes(
    ctx: typer.Context,
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Only notes with this tag"),
):
    """List every indexed note, newest first."""
    with _open_store(_config(ctx)) as store, NoteDB(store) as db:
        rows = db.table_view(filter_tag=tag).to_dicts()

    table = Table(title=f"Total notes: {len(rows)}")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Path", style="dim")
    table.add_column("Updated")
    table.add_column("Tags", style="green")
    for row in rows:
        table.add_row(row["id"], row["title"], row["path"], row["updated"], ", ".join(row["tags"] or []))
    console.print(table)


@app.command()
def stats(ctx: typer.Context, as_json: bool = typer.Option(False, "--json", help="Print only JSON")):
    """Show index statistics."""
    with _open_store(_config(ctx)) as store, NoteDB(store) as db:
        result = db.stats()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    console.print("[bold]Statistics[/bold]")
    console.print(f"  Total notes: {result.total_notes}")
    console.print(f"  Total tags: {result.total_tags}")
    console.print(f"  Total words: {result.total_words}")
    if result.top_tags:
        console.print("\n  Top tags:")
        for tag_name, count in result.top_tags:
            console.print(f"    {tag_name}: {count} note{'s' if count > 1 else ''}")


@app.command()
def export(
    ctx: typer.Context,
    tag: str = typer.Option(..., "--tag", "-t", help="Comma-separated tags, all required"),
    out_dir: Optional[Path] = typer.Option(None, "--dir", help="Output directory"),
):
    """Export the notes carrying all given tags to a JSON file."""
    config = _config(ctx)
    tags = _split_tags(tag)
    if not tags:
        err_console.print("[red]Please provide at least one --tag.[/red]")
        raise typer.Exit(code=1)
    with _open_store(config) as store:
        records = store.snapshot()
    out_path, count = export_by_tags(records, tags, out_dir or config.export_dir)
    console.print(f"[green]Exported {count} notes to {out_path}[/green]")


@app.command()
def graph(
    ctx: typer.Context,
    out: Path = typer.Option(Path("graph.json"), "--out", "-o", help="Output file"),
):
    """Write the note link graph as node-link JSON."""
    with _open_store(_config(ctx)) as store:
        payload = graph_payload(store.snapshot())
    out.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    meta = payload["meta"]
    console.print(f"[green]{out} written[/green]  nodes:{meta['count']}  edges:{meta['links']}")


@app.command()
def watch(ctx: typer.Context):
    """Keep the index up to date while notes change (Ctrl+C to stop)."""
    config = _config(ctx)
    ensure_notes_dir(config.notes_dir)
    with _open_store(config, require_index=False) as store:
        indexer = Indexer(store)
        upserted, removed = indexer.sync(DirectorySource(config.notes_dir))
        console.print(f"Caught up: {upserted} indexed, {removed} removed")

        try:
            with NoteWatcher(indexer, config.notes_dir):
                while True:
                    time.sleep(1)
        except KeyboardInterrupt:
            console.print("\nStopping watcher")


if __name__ == "__main__":
    app()
