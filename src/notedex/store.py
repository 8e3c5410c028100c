"""IndexStore: the single owner of every indexed note and its derived indexes.

Records are keyed by their ``path`` (one record per source file).  The ``id``
is a secondary attribute that must also be unique; when two files claim the
same id, the one that arrives later is renamed ``<id>-<n>``.  Derived
structures (id -> path, tag -> ids, path -> digest) are updated under the same
lock as the primary map, so they never disagree with it.

Saving is debounced: each mutation (re)starts a short timer and the save runs
once the burst is over, writing the store's state at that moment.  A full
rebuild saves straight away.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from notedex.debounce import Debouncer
from notedex.errors import DuplicateIdentifier, MalformedDocument, PersistenceFailure
from notedex.note import NoteRecord

if TYPE_CHECKING:
    from notedex.storage.base import IndexStorage

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3

#: One item of a rebuild: the parsed record, or the reason parsing failed.
NoteAttempt = Union[NoteRecord, MalformedDocument]


@dataclass
class RebuildReport:
    """Outcome of :meth:`IndexStore.rebuild_all`."""

    indexed: int = 0
    failures: list[MalformedDocument] = field(default_factory=list)
    duplicates: list[DuplicateIdentifier] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.duplicates


class IndexStore:
    """In-memory note index with debounced persistence."""

    def __init__(
        self,
        storage: "IndexStorage | None" = None,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.storage = storage
        self._records: dict[str, NoteRecord] = {}
        self._paths_by_id: dict[str, str] = {}
        self._tags: dict[str, set[str]] = {}
        self._digests: dict[str, str] = {}
        self._lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._dirty = False
        self.last_save_error: PersistenceFailure | None = None
        self._saver = (
            Debouncer(debounce_seconds, self.save_now, on_error=self._on_save_error)
            if storage is not None
            else None
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._records

    def get(self, note_id: str) -> NoteRecord | None:
        with self._lock:
            path = self._paths_by_id.get(note_id)
            return self._records[path] if path is not None else None

    def get_by_path(self, path: str) -> NoteRecord | None:
        with self._lock:
            return self._records.get(path)

    def digest_for(self, path: str) -> str | None:
        """Digest of the bytes the record at *path* was last built from."""
        with self._lock:
            return self._digests.get(path)

    def ids_with_tag(self, tag: str) -> set[str]:
        with self._lock:
            return set(self._tags.get(tag.lower(), ()))

    def tag_index(self) -> dict[str, set[str]]:
        """Copy of the lower-cased tag -> note ids index."""
        with self._lock:
            return {tag: set(ids) for tag, ids in self._tags.items()}

    def snapshot(self) -> list[NoteRecord]:
        """All records, newest ``updated`` first, ties in insertion order."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.updated, reverse=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace the in-memory state with whatever the storage holds."""
        if self.storage is None:
            return 0
        records = self.storage.load()
        with self._lock:
            self._clear()
            for record in records:
                stored, duplicate = self._insert(record)
                if duplicate is not None:
                    logger.warning("Stored index: %s", duplicate)
            self._dirty = False
            count = len(self._records)
        logger.info("Loaded %d notes from index", count)
        return count

    def rebuild_all(self, attempts: Iterable[NoteAttempt]) -> RebuildReport:
        """Throw away the current state and index *attempts* from scratch.

        Failed attempts are reported, duplicate ids renamed, and the result is
        saved synchronously.  A save error raises :class:`PersistenceFailure`
        with the report attached; the in-memory rebuild stands regardless.
        """
        report = RebuildReport()
        with self._lock:
            self._clear()
            for attempt in attempts:
                if isinstance(attempt, MalformedDocument):
                    logger.warning("Skipping %s", attempt)
                    report.failures.append(attempt)
                    continue
                _, duplicate = self._insert(attempt)
                if duplicate is not None:
                    logger.warning("%s", duplicate)
                    report.duplicates.append(duplicate)
            report.indexed = len(self._records)
            self._dirty = True

        if self._saver is not None:
            self._saver.cancel()
        try:
            self.save_now()
        except PersistenceFailure as exc:
            exc.report = report
            raise
        return report

    def upsert(self, record: NoteRecord) -> NoteRecord:
        """Insert or replace the record for ``record.path``.

        Returns the record as stored, whose id differs from the input when
        another file already owns that id.
        """
        with self._lock:
            stored, duplicate = self._insert(record)
            self._mark_dirty()
        if duplicate is not None:
            logger.warning("%s", duplicate)
        return stored

    def remove_by_path(self, path: str) -> bool:
        with self._lock:
            record = self._records.pop(path, None)
            if record is None:
                return False
            self._unindex(record)
            self._mark_dirty()
        return True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def save_pending(self) -> bool:
        with self._lock:
            return self._dirty

    def save_now(self) -> None:
        """Write the current contents to storage, bypassing the debounce."""
        if self.storage is None:
            with self._lock:
                self._dirty = False
            return
        with self._save_lock:
            with self._lock:
                records = self.snapshot()
                self._dirty = False
            try:
                self.storage.save(records)
            except PersistenceFailure as exc:
                with self._lock:
                    self._dirty = True
                self.last_save_error = exc
                raise
            self.last_save_error = None
        logger.debug("Saved index (%d notes)", len(records))

    def flush(self) -> None:
        """Run a pending debounced save now."""
        if self._saver is not None:
            self._saver.cancel()
        if self.save_pending:
            self.save_now()

    def close(self) -> None:
        """Cancel the timer, save pending changes now and close the backend.

        The backend is closed even when the final save fails.
        """
        try:
            self.flush()
        finally:
            close_storage = getattr(self.storage, "close", None)
            if close_storage is not None:
                close_storage()

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _clear(self) -> None:
        self._records = {}
        self._paths_by_id = {}
        self._tags = {}
        self._digests = {}

    def _insert(self, record: NoteRecord) -> tuple[NoteRecord, DuplicateIdentifier | None]:
        previous = self._records.get(record.path)
        if previous is not None:
            self._unindex(previous)

        duplicate = None
        owner = self._paths_by_id.get(record.id)
        if owner is not None and owner != record.path:
            new_id = self._free_id(record.id)
            duplicate = DuplicateIdentifier(record.path, record.id, new_id)
            record = record.with_id(new_id)

        self._records[record.path] = record
        self._paths_by_id[record.id] = record.path
        for tag in record.tags:
            self._tags.setdefault(tag.lower(), set()).add(record.id)
        self._digests[record.path] = record.content_hash
        return record, duplicate

    def _unindex(self, record: NoteRecord) -> None:
        if self._paths_by_id.get(record.id) == record.path:
            del self._paths_by_id[record.id]
        for tag in record.tags:
            key = tag.lower()
            ids = self._tags.get(key)
            if ids is None:
                continue
            ids.discard(record.id)
            if not ids:
                del self._tags[key]
        self._digests.pop(record.path, None)

    def _free_id(self, base: str) -> str:
        n = 2
        while f"{base}-{n}" in self._paths_by_id:
            n += 1
        return f"{base}-{n}"

    def _mark_dirty(self) -> None:
        self._dirty = True
        if self._saver is not None:
            self._saver.schedule()

    def _on_save_error(self, exc: BaseException) -> None:
        logger.error("Debounced save failed, will retry on next flush: %s", exc)
