"""Embedding provider abstraction for NoteSage.

The default provider runs a sentence-transformers model locally and
returns normalized vectors, so a dot product is a cosine similarity.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from notesage.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"
EMBEDDING_DIM = 384  # all-MiniLM-L6-v2

# Rough token estimation: ~4 chars per token for English text
CHARS_PER_TOKEN = 4


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    dimension: int

    def embed(self, text: str) -> list[float]:
        """Return a fixed-length, normalized vector for text."""
        ...


class SentenceTransformerEmbedder:
    """Local sentence-transformers embedder, loaded on first use."""

    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODEL, dimension: int = EMBEDDING_DIM):
        self.model_name = model_name
        self.dimension = dimension
        self._model: Any = None
        self._lock = threading.Lock()

    def _get_model(self) -> Any:
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                logger.info("Loading embedding model %s", self.model_name)
                self._model = SentenceTransformer(self.model_name)
            return self._model

    def embed(self, text: str) -> list[float]:
        try:
            model = self._get_model()
            vector = model.encode([text], normalize_embeddings=True)[0]
        except Exception as e:
            raise EmbeddingProviderError(f"Embedding failed ({self.model_name}): {e}") from e
        return [float(x) for x in vector]


def estimate_tokens(text: str) -> int:
    """Estimate token count from text length."""
    return max(1, len(text) // CHARS_PER_TOKEN)
