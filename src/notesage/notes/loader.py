"""Read markdown notes from disk into RawDocument objects.

Front matter supplies the note title and tags. The body is segmented
and the whole file text is checksummed.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from notesage.notes.schema import RawDocument

logger = logging.getLogger(__name__)

# Opening and closing fences must each be a line of their own
_FRONTMATTER = re.compile(r"\A---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|\Z)", re.DOTALL)


def extract_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter and body from markdown content.

    Returns (frontmatter_dict, body_text). Anything that is not a YAML
    mapping between fence lines is left in the body, so a note opening
    with a thematic break keeps all of its text.
    """
    match = _FRONTMATTER.match(content)
    if match is None:
        return {}, content

    try:
        fm = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError:
        return {}, content
    if fm is None:
        fm = {}
    if not isinstance(fm, dict):
        return {}, content

    body = content[match.end():].lstrip("\n")
    return fm, body


def normalize_tags(raw: Any) -> list[str]:
    """Turn a front matter tags value into a clean, de-duplicated list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        raw = [raw]

    tags: list[str] = []
    for tag in raw:
        name = str(tag).strip()
        if name and name not in tags:
            tags.append(name)
    return tags


def get_note_files(notes_dir: Path) -> list[Path]:
    """Get all markdown files in the notes directory."""
    if not notes_dir.is_dir():
        return []
    return sorted(p for p in notes_dir.rglob("*.md") if p.is_file())


def note_path(file_path: Path, base_dir: Path | None = None) -> str:
    """Stored path of a note: relative to base_dir, POSIX separators."""
    return file_path.relative_to(base_dir).as_posix() if base_dir else file_path.as_posix()


def load_document(file_path: Path, base_dir: Path | None = None) -> RawDocument:
    """Read one note file.

    The stored path is relative to base_dir when given, with POSIX
    separators so it stays stable across platforms.
    """
    text = file_path.read_text(encoding="utf-8")
    frontmatter, body = extract_frontmatter(text)

    rel_path = note_path(file_path, base_dir)
    stat = file_path.stat()
    created = getattr(stat, "st_birthtime", stat.st_mtime)

    return RawDocument(
        path=rel_path,
        content=body,
        title=str(frontmatter.get("title") or "Untitled"),
        tags=normalize_tags(frontmatter.get("tags")),
        authored_at=datetime.fromtimestamp(created, tz=timezone.utc),
        source=text,
    )


def load_documents(notes_dir: Path) -> list[RawDocument]:
    """Load every readable note under notes_dir.

    Unreadable files are logged and left out of the pass.
    """
    documents = []
    for file_path in get_note_files(notes_dir):
        try:
            documents.append(load_document(file_path, base_dir=notes_dir))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable note %s: %s", file_path, e)
    return documents
