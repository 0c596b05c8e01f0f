"""
Logging configuration.

We use a YAML logging config (`src/spotmap/config/logging.yaml`) and then apply
runtime overrides from settings (e.g., `SPOTMAP_LOG_LEVEL`).
"""

from __future__ import annotations

import logging.config

from spotmap.config.settings import get_logging_config, get_settings


def configure_logging() -> None:
    """Configure the Python logging system based on packaged YAML config + settings."""
    settings = get_settings()
    # get_logging_config() is cached; dictConfig must not see our mutations on the next call.
    config = {**get_logging_config()}
    config["root"] = dict(config.get("root") or {})
    config["handlers"] = {name: dict(h) for name, h in (config.get("handlers") or {}).items()}

    level = settings.app.log_level.upper()
    config["root"]["level"] = level
    for handler in config["handlers"].values():
        if "level" in handler:
            handler["level"] = level

    logging.config.dictConfig(config)
