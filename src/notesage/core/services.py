"""Wiring of settings, store and providers for one NoteSage project.

Built once by the CLI or the app factory and handed to the indexer and
chat service. Providers load lazily, so building is cheap.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from notesage.config import NoteSageSettings, load_settings
from notesage.core.chat import ChatService
from notesage.core.embeddings import EmbeddingProvider, SentenceTransformerEmbedder
from notesage.core.llm import CompletionProvider, create_provider
from notesage.notes.indexer import IncrementalIndexer, IndexResult, ReindexPolicy, index_notes_dir
from notesage.notes.store import NoteStore
from notesage.retrieval.context import ContextAssembler
from notesage.utils.paths import get_default_database_url, get_notes_dir


@dataclass
class Services:
    project_root: Path
    settings: NoteSageSettings
    store: NoteStore
    embedder: EmbeddingProvider
    provider: CompletionProvider

    @property
    def notes_dir(self) -> Path:
        return get_notes_dir(self.project_root)

    def assembler(self) -> ContextAssembler:
        return ContextAssembler(
            similarity_threshold=self.settings.similarity_threshold,
            match_count=self.settings.match_count,
            recent_count=self.settings.recent_count,
        )

    def indexer(self, policy: ReindexPolicy | None = None) -> IncrementalIndexer:
        return IncrementalIndexer(
            self.store,
            self.embedder,
            policy=policy or ReindexPolicy(self.settings.reindex_policy),
            max_workers=self.settings.index_workers,
        )

    def index(self, policy: ReindexPolicy | None = None, prune: bool = True) -> IndexResult:
        """Run one indexing pass over the project's notes directory."""
        return index_notes_dir(self.notes_dir, self.indexer(policy), prune=prune)

    def chat(self) -> ChatService:
        return ChatService(self.store, self.embedder, self.provider, self.assembler())


def build_services(
    project_root: Path,
    settings: NoteSageSettings | None = None,
    store: NoteStore | None = None,
    embedder: EmbeddingProvider | None = None,
    provider: CompletionProvider | None = None,
) -> Services:
    """Create the services for a project, filling in anything not given."""
    settings = settings or load_settings(project_root)
    if store is None:
        store = NoteStore(settings.database_url or get_default_database_url(project_root))
    return Services(
        project_root=project_root,
        settings=settings,
        store=store,
        embedder=embedder or SentenceTransformerEmbedder(settings.embedding_model),
        provider=provider or create_provider(settings),
    )
