"""Context assembler.

Selects the note sections and conversation turns most relevant to a query
vector and joins them into the context strings handed to the completion
provider. Both policies share the similarity threshold and the match
budget; the chat policy additionally includes the opening turns of the
conversation unconditionally.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from notesage.retrieval.ranking import Vector, rank_by_similarity

SEPARATOR = "\n---\n"

SIMILARITY_THRESHOLD = 0.3
MATCH_COUNT = 10
RECENT_COUNT = 10


class Embedded(Protocol):
    content: str
    embedding: Vector | None


class EmbeddedTurn(Embedded, Protocol):
    role: str


E = TypeVar("E", bound=Embedded)


@dataclass
class ContextAssembler:
    """Assemble ranked candidates into a bounded context string."""
    similarity_threshold: float = SIMILARITY_THRESHOLD
    match_count: int = MATCH_COUNT
    recent_count: int = RECENT_COUNT

    def select_knowledge(self, candidates: Sequence[E], query_vector: Vector) -> list[E]:
        """Most similar candidates above the threshold, at most match_count."""
        return self._scan(candidates, query_vector, already_selected=0)

    def assemble_knowledge_context(self, candidates: Sequence[Embedded], query_vector: Vector) -> str:
        selected = self.select_knowledge(candidates, query_vector)
        return SEPARATOR.join(item.content for item in selected)

    def select_chat(self, turns: Sequence[EmbeddedTurn], query_vector: Vector) -> list[EmbeddedTurn]:
        """Opening turns in order, then relevant later turns.

        The last of the first recent_count turns is the query being answered
        and is left out. Later turns fill whatever remains of match_count.
        """
        recent = list(turns[:self.recent_count])
        if recent:
            recent.pop()
        ranked = self._scan(turns[self.recent_count:], query_vector, already_selected=len(recent))
        return recent + ranked

    def assemble_chat_context(self, turns: Sequence[EmbeddedTurn], query_vector: Vector) -> str:
        selected = self.select_chat(turns, query_vector)
        return SEPARATOR.join(f"{turn.role}: {turn.content}" for turn in selected)

    def _scan(self, candidates: Sequence[E], query_vector: Vector, already_selected: int) -> list[E]:
        # Candidates without an embedding can never pass the threshold
        usable = [c for c in candidates if c.embedding is not None]
        accepted: list[E] = []
        for item, score in rank_by_similarity(usable, query_vector, key=lambda c: c.embedding):
            # Sorted order is non-increasing, so the first failure ends the scan
            if score <= self.similarity_threshold or already_selected + len(accepted) >= self.match_count:
                break
            accepted.append(item)
        return accepted


def assemble_knowledge_context(
    candidates: Sequence[Embedded],
    query_vector: Vector,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    match_count: int = MATCH_COUNT,
) -> str:
    """Convenience function."""
    assembler = ContextAssembler(similarity_threshold=similarity_threshold, match_count=match_count)
    return assembler.assemble_knowledge_context(candidates, query_vector)


def assemble_chat_context(
    turns: Sequence[EmbeddedTurn],
    query_vector: Vector,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
    match_count: int = MATCH_COUNT,
    recent_count: int = RECENT_COUNT,
) -> str:
    """Convenience function."""
    assembler = ContextAssembler(
        similarity_threshold=similarity_threshold,
        match_count=match_count,
        recent_count=recent_count,
    )
    return assembler.assemble_chat_context(turns, query_vector)
