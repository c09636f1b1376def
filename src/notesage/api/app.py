"""FastAPI application factory for NoteSage."""

from __future__ import annotations

import os
from pathlib import Path

from fastapi import FastAPI

from notesage import __version__
from notesage.api.routes import chat, health, notes
from notesage.core.services import Services, build_services
from notesage.utils.paths import get_project_root


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings, store and providers are built once here unless given.
    The project is found from NOTESAGE_PROJECT or the working directory.

    Service mode is controlled via environment variables:
        NOTESAGE_SERVICE_MODE=1: enable CORS and auth middleware
        NOTESAGE_API_KEY: API key for auth (optional, skipped if unset)
        NOTESAGE_CORS_ORIGINS: comma-separated CORS origins (default: *)
    """
    if services is None:
        project_env = os.environ.get("NOTESAGE_PROJECT")
        project_root = get_project_root(Path(project_env) if project_env else None)
        services = build_services(project_root)

    app = FastAPI(
        title="NoteSage",
        version=__version__,
        description="Question answering over a directory of markdown notes",
    )
    app.state.services = services

    # Service mode: add CORS and auth middleware
    service_mode = os.environ.get("NOTESAGE_SERVICE_MODE") == "1"
    if service_mode:
        from starlette.middleware.cors import CORSMiddleware

        from notesage.api.middleware.auth import APIKeyMiddleware

        cors_env = os.environ.get("NOTESAGE_CORS_ORIGINS", "*")
        origins = [o.strip() for o in cors_env.split(",")]
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        app.add_middleware(APIKeyMiddleware)

    # Register route modules
    app.include_router(health.router)
    app.include_router(notes.router)
    app.include_router(chat.router)

    return app
