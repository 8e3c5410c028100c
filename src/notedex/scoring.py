"""Term matching, relevance scoring and excerpt highlighting."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from notedex.note import NoteRecord

TITLE_WEIGHT = 5.0
TAG_WEIGHT = 3.0
BODY_WEIGHT = 2.0
ID_WEIGHT = 1.0
TITLE_WORD_START_BONUS = 1.0
BODY_WORD_START_BONUS = 0.5
# A body this long (in characters) costs the full length penalty of 1 point
LENGTH_PENALTY_CHARS = 20000

EXCERPT_CONTEXT_CHARS = 40
EXCERPT_FALLBACK_CHARS = 120


@dataclass(frozen=True)
class Haystack:
    """Lower-cased searchable fields of one record."""

    title: str
    note_id: str
    body: str
    tags: tuple[str, ...]

    @classmethod
    def of(cls, record: NoteRecord) -> "Haystack":
        return cls(
            title=record.title.lower(),
            note_id=record.id.lower(),
            body=record.content.lower(),
            tags=tuple(t.lower() for t in record.tags),
        )

    def contains(self, term: str) -> bool:
        return (
            term in self.title
            or term in self.note_id
            or term in self.body
            or any(term in t for t in self.tags)
        )


@lru_cache(maxsize=256)
def _word_start(term: str) -> re.Pattern[str]:
    return re.compile(r"\b" + re.escape(term))


def score(hay: Haystack, terms: Iterable[str]) -> float:
    """Fixed heuristic relevance: title > tags > body > id, plus word-start bonuses."""
    total = 0.0
    for term in terms:
        if term in hay.title:
            total += TITLE_WEIGHT
        if any(term in t for t in hay.tags):
            total += TAG_WEIGHT
        if term in hay.body:
            total += BODY_WEIGHT
        if term in hay.note_id:
            total += ID_WEIGHT
        pattern = _word_start(term)
        if pattern.search(hay.title):
            total += TITLE_WORD_START_BONUS
        if pattern.search(hay.body):
            total += BODY_WORD_START_BONUS
    total -= min(1.0, len(hay.body) / LENGTH_PENALTY_CHARS)
    return total


def _lower_in_place(text: str) -> str:
    """``text.lower()`` that keeps every character's offset.

    Characters whose lower case is longer than one character (``İ``) are kept
    as they are.
    """
    lowered = [c.lower() for c in text]
    return "".join(low if len(low) == 1 else c for c, low in zip(text, lowered))


def highlight(
    text: str,
    terms: Iterable[str],
    *,
    context: int = EXCERPT_CONTEXT_CHARS,
    fallback: int = EXCERPT_FALLBACK_CHARS,
    marker: tuple[str, str] = ("[", "]"),
) -> str:
    """Excerpt of *text* around the earliest occurrence of any term.

    The matched span is wrapped in *marker*; ``...`` flags cut-off sides.
    Without a match the first *fallback* characters are returned.
    """
    if not text:
        return ""
    lower = _lower_in_place(text)
    best_idx, best_term = -1, ""
    for term in terms:
        if not term:
            continue
        idx = lower.find(term)
        if idx >= 0 and (best_idx == -1 or idx < best_idx):
            best_idx, best_term = idx, term

    if best_idx < 0:
        excerpt = text[:fallback] + ("..." if len(text) > fallback else "")
    else:
        start = max(0, best_idx - context)
        match_end = best_idx + len(best_term)
        end = min(len(text), match_end + context)
        excerpt = (
            ("..." if start > 0 else "")
            + text[start:best_idx]
            + marker[0]
            + text[best_idx:match_end]
            + marker[1]
            + text[match_end:end]
            + ("..." if end < len(text) else "")
        )
    return excerpt.replace("\r\n", " ").replace("\n", " ")
