"""Core NoteRecord dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any

RECORD_FIELDS = (
    "id",
    "path",
    "title",
    "created",
    "updated",
    "tags",
    "links",
    "content",
    "content_hash",
)


def normalize_path(path: str | PurePath, root: Path | None = None) -> str:
    """Return *path* relative to *root* (when given) with forward slashes."""
    p = Path(path)
    if root is not None and p.is_absolute():
        p = p.relative_to(root)
    return p.as_posix()


def as_strings(values: Any) -> tuple[str, ...]:
    """Coerce *values* to a tuple of strings; anything but a list becomes empty."""
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(str(v) for v in values if v is not None)


def unique_strings(values: Any) -> tuple[str, ...]:
    """Like :func:`as_strings` with duplicates collapsed (first one wins)."""
    return tuple(dict.fromkeys(as_strings(values)))


@dataclass(frozen=True)
class NoteRecord:
    """A single indexed note.

    Instances are immutable: the store replaces records wholesale, so a
    reader holding a record never sees it change underneath it.
    """

    id: str
    path: str
    title: str
    created: str
    updated: str
    content: str = ""
    content_hash: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    #: Ids of the notes this one points at; targets need not be indexed.
    links: tuple[str, ...] = field(default_factory=tuple)

    def with_id(self, new_id: str) -> "NoteRecord":
        return NoteRecord(
            id=new_id,
            path=self.path,
            title=self.title,
            created=self.created,
            updated=self.updated,
            content=self.content,
            content_hash=self.content_hash,
            tags=self.tags,
            links=self.links,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "title": self.title,
            "created": self.created,
            "updated": self.updated,
            "tags": list(self.tags),
            "links": list(self.links),
            "content": self.content,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteRecord":
        return cls(
            id=str(data["id"]),
            path=str(data["path"]),
            title=str(data["title"]),
            created=str(data["created"]),
            updated=str(data["updated"]),
            content=str(data.get("content") or ""),
            content_hash=str(data.get("content_hash") or ""),
            tags=unique_strings(data.get("tags")),
            links=as_strings(data.get("links")),
        )
