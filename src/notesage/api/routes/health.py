"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from notesage import __version__
from notesage.api.deps import get_services
from notesage.api.models.responses import HealthResponse
from notesage.core.services import Services

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Return service status and the configured providers."""
    return HealthResponse(
        status="ok",
        version=__version__,
        provider=services.settings.provider,
        embedding_model=services.settings.embedding_model,
    )
