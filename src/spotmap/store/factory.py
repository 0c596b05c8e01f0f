"""
Store construction from settings.

Relative SQLite paths (`sqlite:///data/spotmap.db`) are resolved against the project
root so the CLI, uvicorn and tests all hit the same file regardless of CWD.
"""

from __future__ import annotations

import logging

from spotmap.config.settings import Settings
from spotmap.core.env import resolve_project_path
from spotmap.store.base import SpotStore
from spotmap.store.memory import MemorySpotStore
from spotmap.store.sql import SqlSpotStore

logger = logging.getLogger(__name__)

_SQLITE_FILE_PREFIX = "sqlite:///"


def resolve_database_url(url: str) -> str:
    """Make a relative SQLite file URL absolute (and create its directory)."""
    if not url.startswith(_SQLITE_FILE_PREFIX):
        return url
    path = url[len(_SQLITE_FILE_PREFIX):]
    if not path or path == ":memory:" or path.startswith("/"):
        return url
    resolved = resolve_project_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return f"{_SQLITE_FILE_PREFIX}{resolved}"


def build_store(settings: Settings) -> SpotStore:
    """Build the configured spot store (SQL schema is created if missing)."""
    if settings.store.backend == "memory":
        logger.info("Using in-memory spot store")
        return MemorySpotStore(cell_size_m=settings.clustering.lock_cell_size_m, timezone=settings.app.timezone)

    url = resolve_database_url(settings.store.database_url)
    store = SqlSpotStore.from_url(url, echo=settings.store.echo, timezone=settings.app.timezone)
    store.create_schema()
    logger.info("Using SQL spot store (%s)", store.engine.url.render_as_string(hide_password=True))
    return store
