"""Change sources: a one-shot directory walk and a live ``watchdog`` watcher."""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from notedex.errors import MalformedDocument
from notedex.note import normalize_path

if TYPE_CHECKING:
    from notedex.indexer import Indexer

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "*.md"

SAMPLE_NOTE = """\
---
id: sample-note
title: Welcome to Your Note System
created: 2024-01-01
updated: 2024-01-01
tags: [welcome, getting-started]
links: []
---

# Welcome!

This is your first note. You can:

1. Add more notes in the `notes/` directory
2. Use frontmatter for metadata
3. Search notes with `notedex search "query"`

## Frontmatter Example

```yaml
---
id: unique-id
title: Note Title
created: YYYY-MM-DD
updated: YYYY-MM-DD
tags: [tag1, tag2]
links: [other-note-id]
---
```
"""


#: A listed file: its relative path and either its bytes or why they could not be read.
ListedFile = tuple[str, Union[bytes, MalformedDocument]]


@runtime_checkable
class ChangeSource(Protocol):
    def list_all(self) -> Iterator[ListedFile]:
        """Yield ``(relative_path, raw_bytes)`` for every note, in a stable order.

        A file that exists but cannot be read is still listed, with a
        :class:`MalformedDocument` in place of its bytes.
        """
        ...


class DirectorySource:
    """Recursive walk of a notes directory."""

    def __init__(self, root: Path | str, pattern: str = DEFAULT_PATTERN) -> None:
        self.root = Path(root)
        self.pattern = pattern

    def list_all(self) -> Iterator[ListedFile]:
        if not self.root.exists():
            logger.warning("Directory does not exist: %s", self.root)
            return
        for path in self.iter_files(self.root):
            rel = normalize_path(path, self.root)
            try:
                raw = path.read_bytes()
            except OSError as exc:
                logger.warning("Cannot read %s: %s", path, exc)
                yield rel, MalformedDocument(rel, f"cannot read file ({exc.strerror or exc})")
                continue
            yield rel, raw

    def iter_files(self, directory: Path) -> list[Path]:
        """Matching files under *directory*, sorted."""
        return sorted(p for p in directory.rglob(self.pattern) if p.is_file())

    def matches(self, path: Path) -> bool:
        return fnmatch.fnmatch(path.name, self.pattern)

    def relative(self, path: Path) -> str:
        return normalize_path(path.absolute(), self.root.absolute())


def ensure_notes_dir(root: Path) -> bool:
    """Create *root* with a welcome note when it does not exist yet.

    Returns ``True`` when the directory was created.
    """
    if root.exists():
        return False
    root.mkdir(parents=True)
    (root / "welcome.md").write_text(SAMPLE_NOTE, encoding="utf-8")
    logger.info("Created notes directory %s with a sample note", root)
    return True


# ---------------------------------------------------------------------------
# Live watching
# ---------------------------------------------------------------------------


class _NoteEventHandler(FileSystemEventHandler):
    def __init__(self, indexer: "Indexer", source: DirectorySource) -> None:
        super().__init__()
        self.indexer = indexer
        self.source = source

    def _note_path(self, raw_path: str | bytes) -> Path | None:
        path = Path(os.fsdecode(raw_path))
        return path if self.source.matches(path) else None

    def _changed(self, raw_path: str | bytes) -> None:
        path = self._note_path(raw_path)
        if path is None:
            return
        try:
            raw = path.read_bytes()
        except OSError as exc:
            # Editors often replace files; a later event carries the final state
            logger.debug("Cannot read %s: %s", path, exc)
            return
        self.indexer.on_changed(self.source.relative(path), raw)

    def _removed(self, raw_path: str | bytes) -> None:
        path = self._note_path(raw_path)
        if path is not None:
            self.indexer.on_removed(self.source.relative(path))

    def _dir_removed(self, raw_path: str | bytes) -> None:
        prefix = self.source.relative(Path(os.fsdecode(raw_path)))
        self.indexer.on_removed_dir(prefix)

    def _dir_added(self, raw_path: str | bytes) -> None:
        directory = Path(os.fsdecode(raw_path))
        if not directory.is_dir():
            return
        for path in self.source.iter_files(directory):
            self._changed(str(path))

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._dir_added(event.src_path)
        else:
            self._changed(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._changed(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self._dir_removed(event.src_path)
        else:
            self._removed(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # watchdog may also report the files of a moved folder one by one
        if event.is_directory:
            self._dir_removed(event.src_path)
            self._dir_added(event.dest_path)
        else:
            self._removed(event.src_path)
            self._changed(event.dest_path)


class NoteWatcher:
    """Watches a notes directory and forwards changes to an :class:`Indexer`.

    ``watchdog`` delivers events from a single observer thread, which keeps
    them in order; the indexer's lock serialises them against rebuilds.
    """

    def __init__(self, indexer: "Indexer", root: Path | str, pattern: str = DEFAULT_PATTERN) -> None:
        self.source = DirectorySource(root, pattern)
        self.handler = _NoteEventHandler(indexer, self.source)
        self._observer: Observer | None = None

    def start(self) -> None:
        observer = Observer()
        observer.schedule(self.handler, str(self.source.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching notes folder: %s", self.source.root)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None

    def __enter__(self) -> "NoteWatcher":
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()
