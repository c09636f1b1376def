"""Notes indexing, search and tag endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from notesage.api.deps import get_services
from notesage.api.models.requests import NotesIndexRequest, NotesSearchRequest
from notesage.api.models.responses import (
    NotesIndexResponse,
    NotesSearchResponse,
    TagListResponse,
)
from notesage.core.services import Services
from notesage.errors import NoteSageError
from notesage.notes.indexer import ReindexPolicy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes")


@router.post("/index", response_model=NotesIndexResponse)
def index_notes_endpoint(
    req: NotesIndexRequest,
    services: Services = Depends(get_services),
) -> NotesIndexResponse:
    """Run one indexing pass over the project's notes directory."""
    if not services.notes_dir.is_dir():
        return NotesIndexResponse(success=False, error=f"Notes directory not found: {services.notes_dir}")

    policy = ReindexPolicy(req.policy) if req.policy else None
    try:
        result = services.index(policy=policy, prune=req.prune)
    except NoteSageError as e:
        logger.warning("Indexing failed: %s", e)
        return NotesIndexResponse(success=False, error=str(e))

    return NotesIndexResponse(success=not result.failed, **result.to_dict())


@router.post("/search", response_model=NotesSearchResponse)
def search_notes_endpoint(
    req: NotesSearchRequest,
    services: Services = Depends(get_services),
) -> NotesSearchResponse:
    """Assemble the notes context for a query."""
    try:
        context = services.chat().search(req.query, tags=req.tags or None)
    except NoteSageError as e:
        return NotesSearchResponse(success=False, query=req.query, error=str(e))
    return NotesSearchResponse(success=True, query=req.query, context=context)


@router.get("/tags", response_model=TagListResponse)
def list_tags_endpoint(services: Services = Depends(get_services)) -> TagListResponse:
    """List every tag attached to an indexed note."""
    return TagListResponse(tags=[tag.name for tag in services.store.list_tags()])
