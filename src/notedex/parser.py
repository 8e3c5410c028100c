"""YAML front-matter parser: raw note bytes to :class:`NoteRecord`."""

from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any

import yaml

from notedex.detector import content_digest
from notedex.errors import MalformedDocument
from notedex.note import NoteRecord, as_strings, unique_strings

# YAML front-matter block; the closing fence may end the file
_FRONTMATTER_RE = re.compile(r"^---[ \t]*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

REQUIRED_FIELDS = ("title", "created", "updated")


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block.  Raises :class:`yaml.YAMLError` on a block that
    is not valid YAML and :class:`ValueError` when it is not a mapping.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    meta = yaml.safe_load(match.group(1) or "") or {}
    if not isinstance(meta, dict):
        raise ValueError("front-matter is not a mapping")
    return meta, content[match.end() :]


def parse_tags(value: Any) -> tuple[str, ...]:
    """Normalise a front-matter ``tags`` value (list or comma-separated string)."""
    if isinstance(value, str):
        return unique_strings([t.strip() for t in value.split(",") if t.strip()])
    return unique_strings(value)


def _iso_date(value: Any, field_name: str, path: str) -> str:
    # PyYAML turns a bare 2024-01-01 into datetime.date
    if isinstance(value, datetime):
        raise MalformedDocument(path, f"'{field_name}' must be a date (YYYY-MM-DD), not a timestamp")
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not _ISO_DATE_RE.match(text):
        raise MalformedDocument(path, f"invalid ISO date {text!r} in '{field_name}' (expected YYYY-MM-DD)")
    return text


def parse_note(path: str, raw: bytes) -> NoteRecord:
    """Build a :class:`NoteRecord` from the raw bytes of the file at *path*.

    *path* is the note's slash-normalised path relative to the notes root.
    Raises :class:`MalformedDocument` when the file cannot be decoded, the
    front-matter is broken, a required field is missing or a date is not
    ``YYYY-MM-DD``.
    """
    try:
        # utf-8-sig drops a leading byte order mark
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedDocument(path, f"not valid UTF-8 ({exc.reason})") from exc

    try:
        meta, body = parse_frontmatter(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise MalformedDocument(path, f"unreadable front-matter: {exc}") from exc

    for name in REQUIRED_FIELDS:
        if meta.get(name) in (None, ""):
            raise MalformedDocument(path, f"missing '{name}' in front-matter")

    note_id = meta.get("id")
    if note_id in (None, ""):
        note_id = PurePosixPath(path).stem

    return NoteRecord(
        id=str(note_id),
        path=path,
        title=str(meta["title"]),
        created=_iso_date(meta["created"], "created", path),
        updated=_iso_date(meta["updated"], "updated", path),
        content=body.strip(),
        content_hash=content_digest(raw),
        tags=parse_tags(meta.get("tags")),
        links=as_strings(meta.get("links")),
    )
