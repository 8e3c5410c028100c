"""notedex: incremental note index with boolean search."""

from notedex.detector import ChangeDecision, ChangeDetector
from notedex.errors import (
    DuplicateIdentifier,
    InvalidQuery,
    MalformedDocument,
    NotedexError,
    PersistenceFailure,
)
from notedex.indexer import Indexer
from notedex.note import NoteRecord
from notedex.parser import parse_frontmatter, parse_note
from notedex.query import QueryEngine, SearchOptions, SearchResponse, parse_query
from notedex.store import IndexStore, RebuildReport

__all__ = [
    "ChangeDecision",
    "ChangeDetector",
    "DuplicateIdentifier",
    "IndexStore",
    "Indexer",
    "InvalidQuery",
    "MalformedDocument",
    "NoteRecord",
    "NotedexError",
    "PersistenceFailure",
    "QueryEngine",
    "RebuildReport",
    "SearchOptions",
    "SearchResponse",
    "parse_frontmatter",
    "parse_note",
    "parse_query",
]
