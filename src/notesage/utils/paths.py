"""Project path helpers for NoteSage."""

from __future__ import annotations

from pathlib import Path


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start directory to find project root.

    Project root is identified by the presence of NOTESAGE.md
    or .notesage/ directory.
    """
    current = (start or Path.cwd()).resolve()
    for directory in [current, *current.parents]:
        if (directory / "NOTESAGE.md").exists():
            return directory
        if (directory / ".notesage").is_dir():
            return directory
    return None


def get_project_root(start: Path | None = None) -> Path:
    """Get project root, raising if not found."""
    root = find_project_root(start)
    if root is None:
        raise FileNotFoundError(
            "No NoteSage project found. Run 'notesage init' to create one."
        )
    return root


def get_notesage_dir(project_root: Path) -> Path:
    """Get .notesage/ directory, creating if needed."""
    d = project_root / ".notesage"
    d.mkdir(exist_ok=True)
    return d


def get_notes_dir(project_root: Path) -> Path:
    """Get notes/ directory path."""
    return project_root / "notes"


def get_default_database_url(project_root: Path) -> str:
    """SQLite URL of the project database under .notesage/."""
    return f"sqlite:///{get_notesage_dir(project_root) / 'notesage.db'}"


def get_user_settings_path() -> Path:
    """Get user-level settings.json path."""
    return Path.home() / ".notesage" / "settings.json"


def get_project_settings_path(project_root: Path) -> Path:
    """Get project-level settings.json path."""
    return project_root / ".notesage" / "settings.json"
