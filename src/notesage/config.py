"""NoteSage configuration management.

Loads and merges settings from project and user-level settings.json files.
API keys are read from the environment by the providers, never from here.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from notesage.utils.paths import (
    get_project_settings_path,
    get_user_settings_path,
)


PROVIDERS = ("anthropic", "openai", "ollama")
REINDEX_POLICIES = ("path", "checksum")

DEFAULT_SETTINGS: dict[str, Any] = {
    "provider": "anthropic",
    "model": "claude-sonnet-4-5-20250929",
    "base_url": None,
    "max_tokens": 1024,
    "temperature": 0.0,
    "embedding_model": "all-MiniLM-L6-v2",
    "similarity_threshold": 0.3,
    "match_count": 10,
    "recent_count": 10,
    "reindex_policy": "path",
    "index_workers": 1,
    "database_url": None,
}


@dataclass
class NoteSageSettings:
    """Merged NoteSage settings."""

    provider: str = "anthropic"
    model: str = "claude-sonnet-4-5-20250929"
    base_url: str | None = None
    max_tokens: int = 1024
    temperature: float = 0.0
    embedding_model: str = "all-MiniLM-L6-v2"
    similarity_threshold: float = 0.3
    match_count: int = 10
    recent_count: int = 10
    reindex_policy: str = "path"
    index_workers: int = 1
    database_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "base_url": self.base_url,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "embedding_model": self.embedding_model,
            "similarity_threshold": self.similarity_threshold,
            "match_count": self.match_count,
            "recent_count": self.recent_count,
            "reindex_policy": self.reindex_policy,
            "index_workers": self.index_workers,
            "database_url": self.database_url,
        }


def load_json_file(path: Path) -> dict[str, Any]:
    """Load a JSON file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, returning new dict.

    - Dicts are recursively merged
    - Lists are replaced (not appended)
    - Scalars are replaced
    """
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(project_root: Path | None = None) -> NoteSageSettings:
    """Load and merge settings from user + project levels.

    Precedence: project settings override user settings override defaults.
    Unknown keys are ignored.
    """
    merged = dict(DEFAULT_SETTINGS)

    user_settings = load_json_file(get_user_settings_path())
    if user_settings:
        merged = deep_merge(merged, user_settings)

    if project_root is not None:
        project_settings = load_json_file(get_project_settings_path(project_root))
        if project_settings:
            merged = deep_merge(merged, project_settings)

    known = {key: merged[key] for key in DEFAULT_SETTINGS if key in merged}
    return NoteSageSettings(**known)


def save_settings(settings: NoteSageSettings, path: Path) -> None:
    """Save settings to a JSON file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(settings.to_dict(), indent=2) + "\n",
        encoding="utf-8",
    )


def validate_settings(settings: NoteSageSettings) -> list[str]:
    """Validate settings, returning list of error messages (empty if valid)."""
    errors = []

    if settings.provider not in PROVIDERS:
        errors.append(f"provider must be one of: {', '.join(PROVIDERS)}")

    if not isinstance(settings.max_tokens, int) or settings.max_tokens < 1:
        errors.append("max_tokens must be a positive integer")

    if not isinstance(settings.temperature, (int, float)) or not (0.0 <= settings.temperature <= 1.0):
        errors.append("temperature must be a float between 0.0 and 1.0")

    if not isinstance(settings.similarity_threshold, (int, float)):
        errors.append("similarity_threshold must be a number")

    for key in ("match_count", "recent_count", "index_workers"):
        value = getattr(settings, key)
        if not isinstance(value, int) or value < 1:
            errors.append(f"{key} must be a positive integer")

    if settings.reindex_policy not in REINDEX_POLICIES:
        errors.append(f"reindex_policy must be one of: {', '.join(REINDEX_POLICIES)}")

    return errors
