"""Configuration for notedex.

Settings are resolved from, lowest precedence first:

1. built-in defaults,
2. the ``[notedex]`` table of a ``notedex.toml`` file::

       [notedex]
       notes_dir        = "notes"
       index_path       = "notes-index.json"
       backend          = "json"          # or "duckdb"
       debounce_seconds = 0.3
       search_limit     = 50
       export_dir       = "export"

3. environment variables ``NOTEDEX_NOTES_DIR``, ``NOTEDEX_INDEX_PATH``,
   ``NOTEDEX_BACKEND``, ``NOTEDEX_DEBOUNCE_SECONDS``, ``NOTEDEX_SEARCH_LIMIT``,
   ``NOTEDEX_EXPORT_DIR``,
4. explicit overrides (CLI options).

Without an ``index_path`` the index file is ``notes-index.json`` for the JSON
backend and ``notes-index.duckdb`` for DuckDB.  Relative paths are resolved
against the directory holding the config file, or the current directory when
there is none.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from notedex.storage.base import IndexStorage

CONFIG_FILENAME = "notedex.toml"
CONFIG_TABLE = "notedex"
DEFAULT_INDEX_FILES = {"json": "notes-index.json", "duckdb": "notes-index.duckdb"}


class NotedexConfig(BaseSettings):
    """notedex settings; ``NOTEDEX_*`` environment variables override init values."""

    notes_dir: Path = Path("notes")
    index_path: Optional[Path] = None
    backend: Literal["json", "duckdb"] = "json"
    debounce_seconds: float = Field(default=0.3, ge=0)
    search_limit: int = Field(default=50, ge=1)
    export_dir: Path = Path("export")

    model_config = SettingsConfigDict(
        env_prefix="NOTEDEX_",
        env_ignore_empty=True,
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # init values come from the config file, so the environment wins
        return (env_settings, init_settings)

    @field_validator("backend", mode="before")
    @classmethod
    def _normalise_backend(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def index_file(self) -> Path:
        """``index_path``, or the backend's default file name."""
        return self.index_path or Path(DEFAULT_INDEX_FILES[self.backend])

    def with_overrides(self, **overrides: Any) -> "NotedexConfig":
        """Copy with every non-``None`` override applied and validated."""
        given = {k: v for k, v in overrides.items() if v is not None}
        if not given:
            return self
        # model_validate skips the settings sources, so the environment is not re-read
        return type(self).model_validate({**self.model_dump(), **given})

    def resolved(self, base: Path) -> "NotedexConfig":
        """Copy with relative paths anchored at *base*."""

        def anchor(p: Path) -> Path:
            p = p.expanduser()
            return p if p.is_absolute() else base / p

        return self.model_copy(
            update={
                "notes_dir": anchor(self.notes_dir),
                "index_path": anchor(self.index_file),
                "export_dir": anchor(self.export_dir),
            }
        )


def find_config_file(start: Path) -> Path | None:
    """Walk upwards from *start* looking for ``notedex.toml``."""
    current = start.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def read_config_table(path: Path) -> dict[str, Any]:
    """Return the ``[notedex]`` table of *path* (empty when it has none)."""
    with open(path, "rb") as fh:
        data = tomllib.load(fh)
    table = data.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ValueError(f"Invalid config: [{CONFIG_TABLE}] in {path} must be a table")
    return table


def load_config(
    path: Path | str | None = None,
    *,
    cwd: Path | None = None,
    **overrides: Any,
) -> NotedexConfig:
    """Resolve the effective configuration (see module docstring).

    Raises :class:`ValueError` (including pydantic's ``ValidationError``) on
    unknown keys or bad values.
    """
    cwd = cwd or Path.cwd()
    config_file = Path(path) if path is not None else find_config_file(cwd)
    file_values = read_config_table(config_file) if config_file is not None else {}

    config = NotedexConfig(**file_values).with_overrides(**overrides)
    base = config_file.parent.resolve() if config_file is not None else cwd
    return config.resolved(base)


def open_storage(config: NotedexConfig) -> IndexStorage:
    """Instantiate the storage backend named by ``config.backend``."""
    if config.backend == "duckdb":
        from notedex.storage.duckdb_file import DuckDBStorage

        return DuckDBStorage(config.index_file)
    from notedex.storage.json_file import JsonFileStorage

    return JsonFileStorage(config.index_file)
