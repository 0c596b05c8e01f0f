# src/spotmap/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/spotmap/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `SPOTMAP_DATABASE_URL`, `SPOTMAP_LOG_LEVEL`)
- an external YAML file via `SPOTMAP_CONFIG_PATH`

Design rule:
- Tuning knobs live in YAML, not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal
from spotmap.core.env import load_dotenv_if_present

import yaml
from pydantic import BaseModel, Field


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `spotmap.config`."""
    text = resources.files("spotmap.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "spotmap"
    timezone: str = "Asia/Tokyo"
    log_level: str = "INFO"
    request_timeout_seconds: float | None = Field(default=10, gt=0)


class StoreSettings(BaseModel):
    backend: Literal["sql", "memory"] = "sql"
    database_url: str = "sqlite:///data/spotmap.db"
    echo: bool = False


class ClusteringSettings(BaseModel):
    radius_m: float = Field(200, gt=0)
    lock_cell_size_m: float = Field(500, ge=1)


class QuerySettings(BaseModel):
    max_results: int = Field(50, ge=1)
    recency_window_hours: float | None = Field(default=None, gt=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)
    log_level = os.getenv("SPOTMAP_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    database_url = os.getenv("SPOTMAP_DATABASE_URL")
    if database_url:
        data.setdefault("store", {})["database_url"] = database_url

    backend = os.getenv("SPOTMAP_STORE_BACKEND")
    if backend:
        data.setdefault("store", {})["backend"] = backend.strip().lower()

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("SPOTMAP_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
