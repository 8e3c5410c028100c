"""Content-digest change detection."""

from __future__ import annotations

import hashlib
from typing import NamedTuple


def content_digest(raw: bytes) -> str:
    """SHA-256 hex digest of the raw, unparsed file bytes."""
    return hashlib.sha256(raw).hexdigest()


class ChangeDecision(NamedTuple):
    digest: str
    changed: bool


class ChangeDetector:
    """Decides whether a file needs re-indexing.

    Stateless: the "last seen" digest is whatever the caller passes in, which
    for the indexer is the ``content_hash`` of the record currently stored for
    the path.  Since that only moves when an upsert succeeds, a file that fails
    to parse keeps being reported as changed until it is fixed.
    """

    def should_upsert(self, path: str, raw: bytes, prior_digest: str | None) -> ChangeDecision:
        digest = content_digest(raw)
        changed = prior_digest is None or prior_digest != digest
        return ChangeDecision(digest, changed)
