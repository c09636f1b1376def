"""Request dependencies shared by the route modules."""

from __future__ import annotations

from fastapi import Request

from notesage.core.services import Services


def get_services(request: Request) -> Services:
    """Return the services built once by create_app."""
    return request.app.state.services
