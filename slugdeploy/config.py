"""Persistent JSON defaults for deploy settings.

Stores per-user defaults for CLI flags (repo, app, process types, ...).
Secrets are read from the environment rather than the config file.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

APP_NAME = "slugdeploy"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
ENV_HEROKU_EMAIL = "HEROKU_EMAIL"
ENV_HEROKU_API_KEY = "HEROKU_API_KEY"

STRING_KEYS = (
    "tarball_name",
    "top_level_folder",
    "app",
    "github_repo",
    "github_release_name",
    "github_release_desc",
    "github_commitish",
    "heroku_email",
)


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_defaults(updates: Mapping[str, object]) -> Path | None:
    """Merge ``updates`` into the stored defaults and write them back.

    Keys outside ``STRING_KEYS`` and ``process_types`` are dropped, so
    secrets never reach the file. Returns the written path, or ``None``
    when the file could not be written.
    """
    merged = load_config()
    for key, value in updates.items():
        if key in STRING_KEYS or key == "process_types":
            merged[key] = value
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(merged, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not save defaults to %s: %s", CONFIG_PATH, exc)
        return None
    return CONFIG_PATH


def config_str(config: Mapping[str, object], key: str) -> str | None:
    """Return a non-empty string value for ``key``, ignoring other types."""
    value = config.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def config_process_types(config: Mapping[str, object]) -> dict[str, str]:
    """Return the ``process_types`` mapping, keeping only string-to-string pairs."""
    value = config.get("process_types")
    if not isinstance(value, dict):
        return {}
    return {name: command for name, command in value.items() if isinstance(name, str) and isinstance(command, str)}


def env_value(name: str, environ: Mapping[str, str] | None = None) -> str | None:
    value = (os.environ if environ is None else environ).get(name, "")
    return value or None
