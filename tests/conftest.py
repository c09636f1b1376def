"""Shared test fixtures for NoteSage."""

from __future__ import annotations

import hashlib
import json
import math
from pathlib import Path

import pytest

from notesage.config import NoteSageSettings
from notesage.core.llm import ModerationResult
from notesage.errors import EmbeddingProviderError
from notesage.notes.store import NoteStore


class FakeEmbedder:
    """Deterministic embedder: fixed vectors for known texts, hashed otherwise."""

    dimension = 8

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail_on: tuple[str, ...] = ()):
        self.vectors = dict(vectors or {})
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise EmbeddingProviderError(f"cannot embed {text[:20]!r}")
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = [b - 127.5 for b in digest[: self.dimension]]
        norm = math.sqrt(sum(x * x for x in raw))
        return [x / norm for x in raw]


class FakeProvider:
    """Completion provider returning queued replies and recording calls."""

    def __init__(self, replies: list[str] | None = None, moderation: ModerationResult | None = None):
        self.replies = list(replies or [])
        self.moderation = moderation or ModerationResult()
        self.calls: list[tuple[str, list[dict[str, str]]]] = []
        self.moderated: list[str] = []

    def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        self.calls.append((system, messages))
        if self.replies:
            return self.replies.pop(0)
        return "fake reply"

    def moderate(self, text: str) -> ModerationResult:
        self.moderated.append(text)
        return self.moderation


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def make_embedder():
    """The fake embedder class, for tests that need custom vectors or failures."""
    return FakeEmbedder


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store() -> NoteStore:
    """In-memory SQLite store."""
    return NoteStore("sqlite://")


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary NoteSage project with a couple of notes."""
    (tmp_path / "NOTESAGE.md").write_text("# Test Project\n")
    notesage_dir = tmp_path / ".notesage"
    notesage_dir.mkdir()
    (notesage_dir / "settings.json").write_text(json.dumps({
        "provider": "ollama",
        "model": "llama3",
    }))
    notes_dir = tmp_path / "notes"
    notes_dir.mkdir()
    (notes_dir / "gears.md").write_text(
        "---\ntitle: Gears\ntags: [design, cad]\n---\n\n"
        "# Gears\n\nGear teeth mesh.\n\n## Spur\n\nStraight teeth.\n",
        encoding="utf-8",
    )
    (notes_dir / "journal").mkdir()
    (notes_dir / "journal" / "monday.md").write_text(
        "---\ntags: journal\n---\n\nNo headings here, just a thought.\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def settings() -> NoteSageSettings:
    return NoteSageSettings(provider="ollama", model="llama3")


@pytest.fixture
def tmp_settings_path(tmp_path: Path) -> Path:
    """Return a path for a temporary settings.json."""
    return tmp_path / "settings.json"
