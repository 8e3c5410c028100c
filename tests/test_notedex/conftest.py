"""Shared fixtures for notedex unit tests."""

from __future__ import annotations

import textwrap
from collections.abc import Sequence
from pathlib import Path

import pytest

from notedex.errors import PersistenceFailure
from notedex.note import NoteRecord


class MemoryStorage:
    """IndexStorage that keeps every save in a list; can be told to fail."""

    def __init__(self, records: Sequence[NoteRecord] = ()) -> None:
        self.stored: list[NoteRecord] = list(records)
        self.saves: list[list[NoteRecord]] = []
        self.fail = False
        self.closed = False

    def load(self) -> list[NoteRecord]:
        return list(self.stored)

    def save(self, records: Sequence[NoteRecord]) -> None:
        if self.fail:
            raise PersistenceFailure("disk full")
        self.stored = list(records)
        self.saves.append(list(records))

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def make_record():
    """Factory for NoteRecords with sensible defaults."""

    def _make(
        note_id: str,
        *,
        path: str | None = None,
        title: str | None = None,
        updated: str = "2024-01-01",
        created: str = "2024-01-01",
        tags: Sequence[str] = (),
        links: Sequence[str] = (),
        content: str = "",
    ) -> NoteRecord:
        return NoteRecord(
            id=note_id,
            path=path or f"{note_id}.md",
            title=title if title is not None else note_id.title(),
            created=created,
            updated=updated,
            content=content,
            content_hash=f"hash-{note_id}-{updated}",
            tags=tuple(tags),
            links=tuple(links),
        )

    return _make


@pytest.fixture()
def write_note():
    """Write a dedented note below a directory and return its path."""

    def _write(directory: Path, name: str, content: str) -> Path:
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def notes_dir(tmp_path: Path, write_note) -> Path:
    """Notes folder with three tagged, inter-linked notes and one broken file."""
    root = tmp_path / "notes"
    write_note(root, "alpha.md", """\
        ---
        id: alpha
        title: Alpha
        created: 2024-01-01
        updated: 2024-01-01
        tags: [a]
        links: [beta, missing]
        ---
        First note, about zebras.
    """)
    write_note(root, "beta.md", """\
        ---
        id: beta
        title: Beta
        created: 2024-02-01
        updated: 2024-06-15
        tags: [b]
        links: [alpha]
        ---
        Second note.
    """)
    write_note(root, "sub/gamma.md", """\
        ---
        id: gamma
        title: Gamma
        created: 2024-03-01
        updated: 2025-01-01
        tags: [a, b]
        ---
        Third note, nested in a folder.
    """)
    write_note(root, "broken.md", """\
        ---
        title: Broken
        created: 2024-01-01
        ---
        No updated date.
    """)
    return root


@pytest.fixture()
def unreadable(monkeypatch):
    """Make ``Path.read_bytes`` fail with EACCES for the given file names.

    Works where chmod does not, e.g. when the tests run as root.
    """
    names: set[str] = set()
    read_bytes = Path.read_bytes

    def _read_bytes(self: Path) -> bytes:
        if self.name in names:
            raise PermissionError(13, "Permission denied", str(self))
        return read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", _read_bytes)
    return names
