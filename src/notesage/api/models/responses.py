"""Pydantic response models for the NoteSage API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    provider: str
    embedding_model: str


class NotesIndexResponse(BaseModel):
    """Response from an indexing pass."""
    success: bool
    unchanged_count: int = 0
    changed_count: int = 0
    modified: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    error: str | None = None


class NotesSearchResponse(BaseModel):
    """Response from a notes search."""
    success: bool
    query: str
    context: str = ""
    error: str | None = None


class TagListResponse(BaseModel):
    """All known tags."""
    tags: list[str] = Field(default_factory=list)


class ConversationResponse(BaseModel):
    """A stored conversation."""
    id: int
    title: str
    description: str
    created_at: datetime


class TurnResponse(BaseModel):
    """A single conversation turn."""
    id: int
    role: str
    content: str
    created_at: datetime


class TurnListResponse(BaseModel):
    conversation_id: int
    turns: list[TurnResponse] = Field(default_factory=list)


class ChatQueryResponse(BaseModel):
    """Response to a chat query."""
    success: bool
    conversation_id: int | None = None
    content: str = ""
    flagged: bool = False
    categories: list[str] = Field(default_factory=list)
    error: str | None = None
