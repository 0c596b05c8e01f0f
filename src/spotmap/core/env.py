"""
Project root and `.env` handling.

The default database is a relative SQLite path (`sqlite:///data/spotmap.db`); uvicorn,
the CLI and pytest may all start from different working directories, so relative paths
are anchored at the project root rather than the CWD. A repo-local `.env` is loaded
from that same root.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


def _is_project_root(path: Path) -> bool:
    return (path / "pyproject.toml").is_file() or (path / ".env").is_file()


@lru_cache
def get_project_root() -> Path:
    """Return the project root (cached): `SPOTMAP_PROJECT_ROOT`, else the nearest marked parent of CWD."""
    override = os.getenv("SPOTMAP_PROJECT_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    cwd = Path.cwd().resolve()
    return next((p for p in (cwd, *cwd.parents) if _is_project_root(p)), cwd)


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `<project root>/.env` once without overriding variables already set."""
    env_path = get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path) -> Path:
    """Resolve a possibly-relative path against the project root."""
    p = Path(path).expanduser()
    return p if p.is_absolute() else (get_project_root() / p).resolve()
