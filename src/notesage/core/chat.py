"""Chat service for NoteSage.

Runs one question/answer exchange against the notes index:
record the user turn, moderate it, assemble chat history and notes
context, ask the completion provider, record the reply, then give both
turns a shared embedding of the whole exchange. The first exchange of a
conversation also back-fills its title and description.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from notesage.core.embeddings import EmbeddingProvider
from notesage.core.llm import CompletionProvider
from notesage.errors import CompletionProviderError, StoreError
from notesage.notes.store import Conversation, NoteStore
from notesage.retrieval.context import SEPARATOR, ContextAssembler

logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"

NO_NOTES = "No notes available for query"
NO_HISTORY = "No chat history available for query"

TITLE_MAX_WORDS = 5
DESCRIPTION_MAX_SENTENCES = 2

SYSTEM_PROMPT = """\
You are a personal notes assistant. Given the following information from \
the personal notes and chat history, answer the user's question using only \
that information, formatted as markdown.

In the chat history, lines that start with "assistant:" are your earlier \
replies and lines that start with "user:" are the user's messages. \
Prioritize the latest user message in the chat history.

Rules:
1) Do not make up answers that are not in the notes.
2) If the answer is not in the notes, say so plainly.
3) Prefer splitting the response into several paragraphs.
4) Put code snippets from the notes in their own paragraph."""

TITLE_PROMPT = f"""\
You are an assistant that summarizes conversations.
RULE: Use {TITLE_MAX_WORDS} or fewer words. Reply with the title only."""

DESCRIPTION_PROMPT = f"""\
You are an assistant that summarizes conversations.
RULE 1: Use {DESCRIPTION_MAX_SENTENCES} or fewer sentences.
RULE 2: Use 50 or fewer words."""

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


@dataclass
class ChatReply:
    """Outcome of one exchange."""
    conversation_id: int
    user_turn_id: int
    assistant_turn_id: int
    content: str
    flagged: bool = False
    categories: list[str] = field(default_factory=list)


def build_messages(notes_context: str, chat_context: str, query: str) -> list[dict[str, str]]:
    """Build the user messages sent alongside SYSTEM_PROMPT."""
    return [
        {"role": USER, "content": f"Here are the notes:\n{notes_context or NO_NOTES}"},
        {"role": USER, "content": f"Here is the chat history with you so far:\n{chat_context or NO_HISTORY}"},
        {"role": USER, "content": "Answer my next question using only the above notes and chat history."},
        {"role": USER, "content": f"Here is my question:\n{query}"},
    ]


def moderation_reply(categories: Iterable[str]) -> str:
    listed = ", ".join(categories) or "unspecified"
    return (
        "Unfortunately, I was unable to generate a response. "
        "Your query was flagged by the provider's content policy.\n\n"
        f"Moderation categories: {listed}"
    )


def clean_title(text: str) -> str:
    """Trim a generated title to at most TITLE_MAX_WORDS words."""
    words = text.strip().strip("\"'").split()
    return " ".join(words[:TITLE_MAX_WORDS])


def clean_description(text: str) -> str:
    """Trim a generated description to at most DESCRIPTION_MAX_SENTENCES sentences."""
    sentences = [s for s in _SENTENCE_END.split(text.strip()) if s]
    return " ".join(sentences[:DESCRIPTION_MAX_SENTENCES])


def exchange_text(user_content: str, assistant_content: str) -> str:
    """Text embedded once and shared by both turns of an exchange."""
    return user_content + SEPARATOR + assistant_content


class ChatService:
    """Answer questions about the notes within a stored conversation."""

    def __init__(
        self,
        store: NoteStore,
        embedder: EmbeddingProvider,
        provider: CompletionProvider,
        assembler: ContextAssembler | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.provider = provider
        self.assembler = assembler or ContextAssembler()

    def resolve_conversation(self, conversation_id: int | None = None) -> Conversation:
        """Return the given conversation, else the most recent, else a new one."""
        if conversation_id is not None:
            conversation = self.store.get_conversation(conversation_id)
            if conversation is None:
                raise StoreError(f"No conversation {conversation_id}")
            return conversation

        conversation = self.store.most_recent_conversation()
        if conversation is not None:
            return conversation
        return self.store.create_conversation().unwrap()

    def search(self, query: str, tags: Iterable[str] | None = None) -> str:
        """Assemble the notes context for a query without asking the model."""
        query_vector = self.embedder.embed(query)
        sections = self.store.all_sections(tags)
        return self.assembler.assemble_knowledge_context(sections, query_vector)

    def send(self, conversation_id: int, query: str, tags: Iterable[str] | None = None) -> ChatReply:
        """Run one exchange and return the assistant's reply.

        Raises:
            EmbeddingProviderError: embedding the query or reply failed.
            CompletionProviderError: moderation or completion failed.
            StoreError: a turn could not be recorded.
        """
        first_exchange = not self.store.has_turns(conversation_id)

        query_vector = self.embedder.embed(query)
        user_turn = self.store.add_turn(conversation_id, USER, query, query_vector).unwrap()

        moderation = self.provider.moderate(query)
        if moderation.flagged:
            logger.info("Query flagged by moderation: %s", ", ".join(moderation.categories))
            content = moderation_reply(moderation.categories)
            assistant_turn = self.store.add_turn(
                conversation_id, ASSISTANT, content, self.embedder.embed(content)
            ).unwrap()
            return ChatReply(
                conversation_id=conversation_id,
                user_turn_id=user_turn.id,
                assistant_turn_id=assistant_turn.id,
                content=content,
                flagged=True,
                categories=list(moderation.categories),
            )

        chat_context = self.assembler.assemble_chat_context(
            self.store.all_turns(conversation_id), query_vector
        )
        notes_context = self.assembler.assemble_knowledge_context(
            self.store.all_sections(tags), query_vector
        )

        content = self.provider.complete(SYSTEM_PROMPT, build_messages(notes_context, chat_context, query))
        assistant_turn = self.store.add_turn(
            conversation_id, ASSISTANT, content, self.embedder.embed(content)
        ).unwrap()

        combined = self.embedder.embed(exchange_text(query, content))
        for turn_id in (user_turn.id, assistant_turn.id):
            updated = self.store.update_turn_embedding(turn_id, combined)
            if updated.failed:
                logger.warning("Could not share exchange embedding with turn %s: %s", turn_id, updated.error)

        if first_exchange:
            self.describe_conversation(conversation_id, query, content)

        return ChatReply(
            conversation_id=conversation_id,
            user_turn_id=user_turn.id,
            assistant_turn_id=assistant_turn.id,
            content=content,
        )

    def describe_conversation(self, conversation_id: int, query: str, reply: str) -> None:
        """Generate and store a title and description from the first exchange."""
        exchange = [{"role": USER, "content": f"Conversation:\nuser: {query}\nassistant: {reply}"}]
        try:
            title = clean_title(self.provider.complete(TITLE_PROMPT, exchange))
            description = clean_description(self.provider.complete(DESCRIPTION_PROMPT, exchange))
        except CompletionProviderError as e:
            logger.warning("Could not describe conversation %s: %s", conversation_id, e)
            return

        updated = self.store.update_conversation(
            conversation_id, title or "New Chat", description
        )
        if updated.failed:
            logger.warning("Could not update conversation %s: %s", conversation_id, updated.error)
