"""Boolean query parsing and search over an :class:`IndexStore`.

Query syntax
------------
::

    foo bar OR baz -qux "exact phrase" NOT draft

* Whitespace separates terms; ``"double quotes"`` keep a phrase together.
* Terms next to each other are AND'ed into a clause; ``OR`` starts a new
  clause.  A note matches when any clause matches in full.
* ``-term`` and ``NOT term`` exclude notes containing *term*, whatever clause
  matched.
* Matching is a case-insensitive substring test against the title, id, body
  and tags.

Structured filters (tags, ``updated`` date range, paging) come in through
:class:`SearchOptions`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from notedex.errors import InvalidQuery
from notedex.scoring import Haystack, highlight, score

if TYPE_CHECKING:
    from notedex.note import NoteRecord
    from notedex.store import IndexStore

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r'"([^"]+)"|(\S+)')
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_LIMIT = 50


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


def tokenize(text: str) -> list[str]:
    return [m.group(1) if m.group(1) is not None else m.group(2) for m in _TOKEN_RE.finditer(text)]


@dataclass(frozen=True)
class ParsedQuery:
    #: OR'ed clauses, each a list of AND'ed lower-cased terms
    clauses: tuple[tuple[str, ...], ...] = ()
    negatives: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.clauses and not self.negatives

    @property
    def terms(self) -> tuple[str, ...]:
        """Distinct positive terms across all clauses, first-seen order."""
        return tuple(dict.fromkeys(t for clause in self.clauses for t in clause))


def parse_query(text: str) -> ParsedQuery:
    tokens = tokenize(text)
    clauses: list[tuple[str, ...]] = []
    negatives: list[str] = []
    current: list[str] = []

    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        upper = token.upper()
        if upper == "OR":
            if current:
                clauses.append(tuple(current))
            current = []
        elif upper == "NOT":
            if i < len(tokens):
                negatives.append(tokens[i].lower())
                i += 1
        elif token.startswith("-") and len(token) > 1:
            negatives.append(token[1:].lower())
        else:
            current.append(token.lower())
    if current:
        clauses.append(tuple(current))

    return ParsedQuery(clauses=tuple(clauses), negatives=tuple(negatives))


# ---------------------------------------------------------------------------
# Options and results
# ---------------------------------------------------------------------------


def _date_bound(value: str | None, name: str) -> str:
    """Return *value* if it is ``YYYY-MM-DD``; anything else means unbounded."""
    value = (value or "").strip()
    if value and not _ISO_DATE_RE.match(value):
        logger.debug("Ignoring invalid %s bound %r (expected YYYY-MM-DD)", name, value)
        return ""
    return value


@dataclass
class SearchOptions:
    tags: tuple[str, ...] = ()
    after: str = ""
    before: str = ""
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def __post_init__(self) -> None:
        self.tags = tuple(dict.fromkeys(t.strip().lower() for t in self.tags if t and t.strip()))
        self.after = _date_bound(self.after, "after")
        self.before = _date_bound(self.before, "before")
        self.limit = max(1, int(self.limit))
        self.offset = max(0, int(self.offset))

    @property
    def has_filters(self) -> bool:
        return bool(self.tags or self.after or self.before)

    def accepts(self, record: "NoteRecord") -> bool:
        if self.after and record.updated < self.after:
            return False
        if self.before and record.updated > self.before:
            return False
        if self.tags:
            own = {t.lower() for t in record.tags}
            if not all(t in own for t in self.tags):
                return False
        return True


@dataclass(frozen=True)
class SearchHit:
    id: str
    title: str
    path: str
    updated: str
    tags: tuple[str, ...]
    excerpt: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "path": self.path,
            "updated": self.updated,
            "tags": list(self.tags),
            "excerpt": self.excerpt,
        }


@dataclass
class SearchResponse:
    query: str
    total: int
    results: list[SearchHit] = field(default_factory=list)
    options: SearchOptions = field(default_factory=SearchOptions)
    parsed: ParsedQuery = field(default_factory=ParsedQuery)

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "filters": {
                "tags": list(self.options.tags),
                "after": self.options.after,
                "before": self.options.before,
                "limit": self.options.limit,
                "offset": self.options.offset,
                "negatives": list(self.parsed.negatives),
            },
            "total": self.total,
            "count": self.count,
            "results": [hit.to_dict() for hit in self.results],
        }


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class QueryEngine:
    """Read-only search over a store snapshot."""

    def __init__(self, store: "IndexStore") -> None:
        self.store = store

    def search(self, query: str, options: SearchOptions | None = None) -> SearchResponse:
        """Run *query* and return one page of ranked hits.

        Raises :class:`InvalidQuery` when the query has neither a free-text
        condition nor any filter.
        """
        options = options or SearchOptions()
        parsed = parse_query(query)
        if parsed.is_empty and not options.has_filters:
            raise InvalidQuery("query needs at least one term or filter (tag, after, before)")

        records = self.store.snapshot()
        if options.tags:
            allowed = set.intersection(*(self.store.ids_with_tag(t) for t in options.tags))
            records = [r for r in records if r.id in allowed]

        terms = parsed.terms
        matches: list[tuple[float, NoteRecord]] = []
        for record in records:
            if not options.accepts(record):
                continue
            hay = Haystack.of(record)
            if any(hay.contains(t) for t in parsed.negatives):
                continue
            if parsed.clauses and not any(all(hay.contains(t) for t in c) for c in parsed.clauses):
                continue
            matches.append((score(hay, terms) if parsed.clauses else 0.0, record))

        if parsed.clauses:
            matches.sort(key=lambda m: (m[0], m[1].updated), reverse=True)
        else:
            matches.sort(key=lambda m: m[1].updated, reverse=True)

        page = matches[options.offset : options.offset + options.limit]
        hits = [
            SearchHit(
                id=r.id,
                title=r.title,
                path=r.path,
                updated=r.updated,
                tags=r.tags,
                excerpt=highlight(r.content, terms),
            )
            for _, r in page
        ]
        logger.debug("Query %r: %d matches, returning %d", query, len(matches), len(hits))
        return SearchResponse(query=query, total=len(matches), results=hits, options=options, parsed=parsed)
