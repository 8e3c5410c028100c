"""Exception taxonomy for the note index."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notedex.store import RebuildReport


class NotedexError(Exception):
    """Base class for every error raised by :mod:`notedex`."""


class MalformedDocument(NotedexError):
    """A note's front-matter is missing a required field or is unreadable.

    Always scoped to one file: batch operations collect these and carry on.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class DuplicateIdentifier(NotedexError):
    """Two notes declared the same id; the later one was renamed.

    Recorded as a warning rather than raised.
    """

    def __init__(self, path: str, original_id: str, assigned_id: str) -> None:
        super().__init__(
            f"duplicate id {original_id!r} in {path}; renamed to {assigned_id!r}"
        )
        self.path = path
        self.original_id = original_id
        self.assigned_id = assigned_id


class PersistenceFailure(NotedexError):
    """Loading or saving the index failed.

    In-memory state is left as it was after the triggering mutation; the
    failed save can be retried.
    """

    def __init__(self, message: str, *, report: "RebuildReport | None" = None) -> None:
        super().__init__(message)
        self.report = report


class InvalidQuery(NotedexError):
    """The query has no free-text condition and no filters."""
