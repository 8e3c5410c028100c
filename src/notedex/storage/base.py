"""Persistence protocol for the note index."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from notedex.note import NoteRecord


@runtime_checkable
class IndexStorage(Protocol):
    """Where an :class:`~notedex.store.IndexStore` keeps its records.

    The JSON file and DuckDB backends both implement it.  Both methods raise
    :class:`notedex.errors.PersistenceFailure` on I/O or decode errors.  A
    backend holding a connection may also define ``close()``; the store calls
    it from :meth:`~notedex.store.IndexStore.close`.
    """

    def load(self) -> list[NoteRecord]:
        """Return every stored record in the order it was saved."""
        ...

    def save(self, records: Sequence[NoteRecord]) -> None:
        """Replace the stored contents with *records*, keeping their order."""
        ...
