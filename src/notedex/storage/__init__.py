"""Storage backends for the note index."""

from notedex.storage.base import IndexStorage
from notedex.storage.duckdb_file import DuckDBStorage
from notedex.storage.json_file import JsonFileStorage

__all__ = ["IndexStorage", "DuckDBStorage", "JsonFileStorage"]
