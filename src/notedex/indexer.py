"""Indexer: feeds change events through the detector into the store."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from notedex.detector import ChangeDetector
from notedex.errors import MalformedDocument
from notedex.parser import parse_note
from notedex.store import NoteAttempt, RebuildReport

if TYPE_CHECKING:
    from notedex.note import NoteRecord
    from notedex.sources import ChangeSource
    from notedex.store import IndexStore

logger = logging.getLogger(__name__)


def attempt_parse(path: str, raw: bytes) -> NoteAttempt:
    """Parse one file, returning the failure instead of raising it."""
    try:
        return parse_note(path, raw)
    except MalformedDocument as exc:
        return exc


class Indexer:
    """Single writer for an :class:`IndexStore`.

    Rebuilds and watch events go through one lock, so the store only ever
    sees one mutation stream at a time.
    """

    def __init__(self, store: "IndexStore", detector: ChangeDetector | None = None) -> None:
        self.store = store
        self.detector = detector or ChangeDetector()
        self._lock = threading.Lock()

    def rebuild(self, source: "ChangeSource") -> RebuildReport:
        """Full re-index from everything *source* lists."""
        with self._lock:
            attempts = [
                raw if isinstance(raw, MalformedDocument) else attempt_parse(path, raw)
                for path, raw in source.list_all()
            ]
            report = self.store.rebuild_all(attempts)
        logger.info(
            "Rebuilt index: %d notes, %d failures, %d renamed ids",
            report.indexed,
            len(report.failures),
            len(report.duplicates),
        )
        return report

    def sync(self, source: "ChangeSource") -> tuple[int, int]:
        """Bring the store in line with *source* without a full rebuild.

        Every listed file goes through the change detector; records whose
        file is no longer listed are removed.  A file that is listed but
        unreadable keeps its record.  Returns ``(upserted, removed)``.
        """
        seen: set[str] = set()
        upserted = 0
        for path, raw in source.list_all():
            seen.add(path)
            if isinstance(raw, MalformedDocument):
                logger.warning("Not indexed: %s", raw)
                continue
            if self.on_changed(path, raw) is not None:
                upserted += 1
        removed = 0
        for record in self.store.snapshot():
            if record.path not in seen and self.on_removed(record.path):
                removed += 1
        return upserted, removed

    def on_changed(self, path: str, raw: bytes) -> "NoteRecord | None":
        """Handle an added or modified file.

        Returns the stored record, or ``None`` when the bytes are unchanged or
        the file failed to parse (its previous record, if any, stays put).
        """
        with self._lock:
            decision = self.detector.should_upsert(path, raw, self.store.digest_for(path))
            if not decision.changed:
                logger.debug("Unchanged: %s", path)
                return None
            try:
                record = parse_note(path, raw)
            except MalformedDocument as exc:
                logger.warning("Not indexed: %s", exc)
                return None
            stored = self.store.upsert(record)
        logger.info("Indexed: %s", path)
        return stored

    def on_removed(self, path: str) -> bool:
        with self._lock:
            removed = self.store.remove_by_path(path)
        if removed:
            logger.info("Removed: %s", path)
        return removed

    def on_removed_dir(self, prefix: str) -> int:
        """Drop every record stored under the folder *prefix*; returns the count.

        An empty prefix (or ``"."``) is the notes root itself.
        """
        prefix = prefix.strip("/")
        under = "" if prefix in ("", ".") else prefix + "/"
        removed = 0
        with self._lock:
            for record in self.store.snapshot():
                if record.path.startswith(under) and self.store.remove_by_path(record.path):
                    removed += 1
        if removed:
            logger.info("Removed %d notes under %s", removed, prefix or ".")
        return removed
