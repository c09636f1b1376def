"""Plain data types shared by the segmenter, loader and indexer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class BlockKind(Enum):
    """Closed set of top-level markdown block kinds."""
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE = "code"
    EMBEDDED = "embedded"  # raw HTML / JSX components / MDX import-export
    OTHER = "other"


@dataclass(frozen=True)
class Block:
    """A top-level block of a parsed markdown document."""
    kind: BlockKind
    markdown: str
    depth: int = 0  # heading level, 0 for non-headings
    text: str = ""  # inline text of a heading

    @property
    def is_heading(self) -> bool:
        return self.kind is BlockKind.HEADING


@dataclass(frozen=True)
class RawSection:
    """A heading-bounded slice of a document, ready to embed."""
    content: str
    heading: str | None = None
    slug: str | None = None
    breadcrumb: tuple[str, ...] = ()


@dataclass(frozen=True)
class EmbeddedSection:
    """A section together with the vector of its content."""
    section: RawSection
    embedding: list[float]
    token_count: int


@dataclass
class RawDocument:
    """A note as read from disk, before segmentation."""
    path: str
    content: str
    title: str = "Untitled"
    tags: list[str] = field(default_factory=list)
    authored_at: datetime | None = None
    source: str | None = None  # full file text, front matter included

    @property
    def raw_text(self) -> str:
        return self.source if self.source is not None else self.content
