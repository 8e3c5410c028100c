"""Tag-filtered JSON export."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from notedex.note import NoteRecord

logger = logging.getLogger(__name__)


def filter_by_tags(records: Iterable[NoteRecord], tags: Sequence[str]) -> list[NoteRecord]:
    """Records carrying every tag in *tags* (case-insensitive)."""
    wanted = [t.lower() for t in tags]
    return [r for r in records if all(t in {x.lower() for x in r.tags} for t in wanted)]


def export_by_tags(records: Iterable[NoteRecord], tags: Sequence[str], out_dir: Path | str) -> tuple[Path, int]:
    """Write the notes carrying all *tags* to ``out_dir/notes-<t1_t2>.json``.

    Returns the output path and the number of notes written.
    """
    tags = [t.strip() for t in tags if t and t.strip()]
    if not tags:
        raise ValueError("Please provide at least one tag")
    selected = filter_by_tags(records, tags)

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"notes-{'_'.join(tags)}.json"
    out_path.write_text(
        json.dumps([r.to_dict() for r in selected], indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    logger.info("Exported %d notes to %s", len(selected), out_path)
    return out_path, len(selected)
