"""Single-document JSON storage backend (``notes-index.json``)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from notedex.errors import PersistenceFailure
from notedex.note import NoteRecord

logger = logging.getLogger(__name__)


class JsonFileStorage:
    """Stores the index as one JSON array of note objects.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-save leaves the previous index intact.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[NoteRecord]:
        if not self.path.exists():
            logger.debug("No index at %s, starting empty", self.path)
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Failed to load index {self.path}: {exc}") from exc
        if not isinstance(data, list):
            raise PersistenceFailure(f"Failed to load index {self.path}: expected a JSON array")
        try:
            return [NoteRecord.from_dict(item) for item in data]
        except (KeyError, TypeError, AttributeError) as exc:
            raise PersistenceFailure(f"Failed to load index {self.path}: bad record ({exc})") from exc

    def save(self, records: Sequence[NoteRecord]) -> None:
        payload = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload + "\n")
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"Failed to save index {self.path}: {exc}") from exc
        logger.info("Saved %d notes to %s", len(records), self.path)
