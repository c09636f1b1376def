"""Conversation and chat query endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from notesage.api.deps import get_services
from notesage.api.models.requests import ChatQueryRequest, ConversationCreateRequest
from notesage.api.models.responses import (
    ChatQueryResponse,
    ConversationResponse,
    TurnListResponse,
    TurnResponse,
)
from notesage.core.services import Services
from notesage.errors import NoteSageError, StoreError
from notesage.notes.store import Conversation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat")


def _conversation_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        title=conversation.title,
        description=conversation.description,
        created_at=conversation.created_at,
    )


@router.post("/conversations", response_model=ConversationResponse)
def create_conversation_endpoint(
    req: ConversationCreateRequest,
    services: Services = Depends(get_services),
) -> ConversationResponse:
    """Start a new conversation."""
    result = services.store.create_conversation(title=req.title, description=req.description)
    if result.failed:
        raise HTTPException(status_code=500, detail=str(result.error))
    return _conversation_response(result.value)


@router.get("/conversations/latest", response_model=ConversationResponse)
def latest_conversation_endpoint(services: Services = Depends(get_services)) -> ConversationResponse:
    """Return the most recently created conversation."""
    conversation = services.store.most_recent_conversation()
    if conversation is None:
        raise HTTPException(status_code=404, detail="No conversations yet")
    return _conversation_response(conversation)


@router.get("/conversations/{conversation_id}/turns", response_model=TurnListResponse)
def list_turns_endpoint(
    conversation_id: int,
    services: Services = Depends(get_services),
) -> TurnListResponse:
    """Return the turns of a conversation, oldest first."""
    if services.store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail=f"No conversation {conversation_id}")
    turns = services.store.all_turns(conversation_id)
    return TurnListResponse(
        conversation_id=conversation_id,
        turns=[
            TurnResponse(id=t.id, role=t.role, content=t.content, created_at=t.created_at)
            for t in turns
        ],
    )


@router.post("/query", response_model=ChatQueryResponse)
def chat_query_endpoint(
    req: ChatQueryRequest,
    services: Services = Depends(get_services),
) -> ChatQueryResponse:
    """Ask a question within a conversation."""
    chat = services.chat()
    try:
        conversation = chat.resolve_conversation(req.conversation_id)
    except StoreError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    try:
        reply = chat.send(conversation.id, req.query, tags=req.tags or None)
    except NoteSageError as e:
        logger.warning("Chat query failed in conversation %s: %s", conversation.id, e)
        return ChatQueryResponse(success=False, conversation_id=conversation.id, error=str(e))

    return ChatQueryResponse(
        success=True,
        conversation_id=reply.conversation_id,
        content=reply.content,
        flagged=reply.flagged,
        categories=reply.categories,
    )
