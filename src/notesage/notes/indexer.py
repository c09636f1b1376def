"""Notes indexer: turns markdown notes into embedded sections in the store.

Each pass checksums every document, decides whether to skip, insert or
replace it, and only then segments and embeds the ones that need work.
A document is written in one go or not at all, so a failure never leaves
some of its sections behind.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from notesage.core.embeddings import EmbeddingProvider, estimate_tokens
from notesage.errors import EmbeddingProviderError, SegmentationError, StoreError
from notesage.notes.loader import get_note_files, load_documents, note_path
from notesage.notes.schema import EmbeddedSection, RawDocument
from notesage.notes.segmenter import segment
from notesage.notes.store import NoteStore, new_refresh_version

logger = logging.getLogger(__name__)


class ReindexPolicy(Enum):
    """How documents already stored at a path are treated.

    PATH skips any path that is already stored, so edits to an existing
    note are not picked up. CHECKSUM replaces a stored note whose content
    checksum changed.
    """
    PATH = "path"
    CHECKSUM = "checksum"


class Action(Enum):
    SKIP = "skip"
    INSERT = "insert"
    REPLACE = "replace"


@dataclass
class IndexResult:
    """Counters and paths reported by one indexing pass."""
    unchanged_count: int = 0
    changed_count: int = 0
    modified: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "unchanged_count": self.unchanged_count,
            "changed_count": self.changed_count,
            "modified": list(self.modified),
            "failed": list(self.failed),
            "removed": list(self.removed),
        }


def compute_checksum(content: str) -> str:
    """SHA-256 of the raw content, base64-encoded."""
    digest = hashlib.sha256(content.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class IncrementalIndexer:
    """Index raw documents into a NoteStore, skipping unchanged ones."""

    def __init__(
        self,
        store: NoteStore,
        embedder: EmbeddingProvider,
        policy: ReindexPolicy = ReindexPolicy.PATH,
        max_workers: int = 1,
    ):
        self.store = store
        self.embedder = embedder
        self.policy = policy
        self.max_workers = max(1, max_workers)

    def plan(self, document: RawDocument, checksum: str) -> Action:
        """Decide what to do with one document under the current policy."""
        if self.policy is ReindexPolicy.PATH:
            if self.store.exists(document.path):
                return Action.SKIP
            return Action.INSERT

        if self.store.is_modified(document.path, checksum):
            return Action.REPLACE
        if self.store.exists(document.path):
            return Action.SKIP
        return Action.INSERT

    def embed_document(self, document: RawDocument) -> list[EmbeddedSection]:
        """Segment and embed a document entirely in memory.

        Malformed markdown yields no sections. Embedding failures propagate.
        """
        try:
            sections = segment(document.content)
        except SegmentationError as e:
            logger.warning("Could not segment %s, recording it without sections: %s", document.path, e)
            return []

        embedded = []
        for section in sections:
            vector = self.embedder.embed(section.content)
            embedded.append(EmbeddedSection(
                section=section,
                embedding=vector,
                token_count=estimate_tokens(section.content),
            ))
        return embedded

    def index_all(self, documents: Iterable[RawDocument]) -> IndexResult:
        """Run one indexing pass over documents.

        Returns counters of unchanged and changed documents plus the paths
        that were modified or failed. There is no rollback across documents.
        """
        result = IndexResult()
        refresh_version = new_refresh_version()
        refreshed_at = datetime.now(timezone.utc)

        pending: list[tuple[RawDocument, str, Action]] = []
        for document in documents:
            checksum = compute_checksum(document.raw_text)
            try:
                action = self.plan(document, checksum)
            except StoreError as e:
                logger.warning("Skipping %s, store lookup failed: %s", document.path, e)
                result.failed.append(document.path)
                continue

            if action is Action.SKIP:
                logger.debug("Unchanged: %s", document.path)
                result.unchanged_count += 1
            else:
                pending.append((document, checksum, action))

        prepared = self._prepare_all([doc for doc, _, _ in pending])

        for (document, checksum, action), sections in zip(pending, prepared):
            if isinstance(sections, EmbeddingProviderError):
                logger.warning("Abandoning %s for this pass: %s", document.path, sections)
                result.failed.append(document.path)
                continue

            if action is Action.REPLACE:
                removed = self.store.remove(document.path)
                if removed.failed:
                    result.failed.append(document.path)
                    continue

            written = self.store.write_document(
                path=document.path,
                checksum=checksum,
                refresh_version=refresh_version,
                sections=sections,
                tags=document.tags,
                authored_at=document.authored_at,
                refreshed_at=refreshed_at,
            )
            if written.failed:
                result.failed.append(document.path)
                continue

            logger.debug("%s: %s (%d sections)", action.value.capitalize(), document.path, len(sections))
            result.changed_count += 1
            result.modified.append(document.path)

        logger.info(
            "Indexing pass done: %d unchanged, %d changed, %d failed",
            result.unchanged_count, result.changed_count, len(result.failed),
        )
        return result

    def prune(self, current_paths: Iterable[str]) -> list[str]:
        """Remove stored documents whose source no longer exists."""
        keep = set(current_paths)
        removed = []
        for path in self.store.list_paths():
            if path in keep:
                continue
            if self.store.remove(path).success:
                logger.debug("Removed: %s", path)
                removed.append(path)
        return removed

    def _prepare_all(
        self, documents: Sequence[RawDocument]
    ) -> list[list[EmbeddedSection] | EmbeddingProviderError]:
        if self.max_workers == 1 or len(documents) < 2:
            return [self._prepare(doc) for doc in documents]
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(self._prepare, documents))

    def _prepare(self, document: RawDocument) -> list[EmbeddedSection] | EmbeddingProviderError:
        try:
            return self.embed_document(document)
        except EmbeddingProviderError as e:
            return e


def index_notes_dir(
    notes_dir: Path,
    indexer: IncrementalIndexer,
    prune: bool = True,
) -> IndexResult:
    """Index every note under notes_dir, optionally dropping deleted ones.

    Notes that exist but cannot be read are reported as failed and kept
    in the store; only notes whose file is gone are pruned.
    """
    present = [note_path(p, notes_dir) for p in get_note_files(notes_dir)]
    documents = load_documents(notes_dir)
    result = indexer.index_all(documents)

    loaded = {doc.path for doc in documents}
    result.failed.extend(path for path in present if path not in loaded)
    if prune:
        result.removed = indexer.prune(present)
    return result
