"""Pydantic request models for the NoteSage API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class NotesIndexRequest(BaseModel):
    """Request to run an indexing pass over the notes directory."""
    policy: Literal["path", "checksum"] | None = Field(
        default=None, description="Reindex policy (default: from settings)"
    )
    prune: bool = Field(default=False, description="Remove notes whose file no longer exists")


class NotesSearchRequest(BaseModel):
    """Request to assemble the notes context for a query."""
    query: str = Field(..., min_length=1, description="Natural language search query")
    tags: list[str] = Field(default_factory=list, description="Only use notes carrying any of these tags")


class ConversationCreateRequest(BaseModel):
    """Request to start a new conversation."""
    title: str = Field(default="New Chat", description="Initial title")
    description: str = Field(default="", description="Initial description")


class ChatQueryRequest(BaseModel):
    """Request to ask a question within a conversation."""
    query: str = Field(..., min_length=1, description="The user's question")
    conversation_id: int | None = Field(
        default=None, description="Conversation ID (default: most recent, or a new one)"
    )
    tags: list[str] = Field(default_factory=list, description="Only use notes carrying any of these tags")
