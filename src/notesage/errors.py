"""Exception hierarchy for NoteSage.

Every error raised by the core derives from NoteSageError so outer
surfaces (CLI, HTTP API) can catch them in one place.
"""

from __future__ import annotations


class NoteSageError(Exception):
    """Base class for NoteSage errors."""


class DimensionMismatch(NoteSageError, ValueError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(
            f"Both vectors must be of the same length (got {left} and {right})"
        )
        self.left = left
        self.right = right


class StoreError(NoteSageError):
    """A persistence operation failed."""


class SegmentationError(NoteSageError):
    """Markdown content could not be split into sections."""


class EmbeddingProviderError(NoteSageError):
    """The embedding provider failed to produce a vector."""


class CompletionProviderError(NoteSageError):
    """The completion or moderation provider failed."""
