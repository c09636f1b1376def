"""API key check for service mode.

Requests must carry the configured key in the X-API-Key header. Health
probes and CORS preflight requests pass through, as does everything when
no key is configured.
"""

from __future__ import annotations

import hmac
import logging
import os
from collections.abc import Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
API_KEY_ENV = "NOTESAGE_API_KEY"
PUBLIC_PATHS = frozenset({"/health"})


def key_matches(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of a presented key with the configured one."""
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests whose X-API-Key header does not match."""

    def __init__(  # type: ignore[override]
        self,
        app,
        api_key: str | None = None,
        public_paths: Iterable[str] = PUBLIC_PATHS,
    ) -> None:
        super().__init__(app)
        self.api_key = api_key or os.environ.get(API_KEY_ENV) or None
        self.public_paths = frozenset(public_paths)

    def is_exempt(self, request: Request) -> bool:
        return (
            self.api_key is None
            or request.method == "OPTIONS"
            or request.url.path in self.public_paths
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self.is_exempt(request):
            return await call_next(request)

        if not key_matches(request.headers.get(API_KEY_HEADER), self.api_key):
            logger.info("Rejected %s %s: missing or wrong API key", request.method, request.url.path)
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid or missing API key"},
                headers={"WWW-Authenticate": API_KEY_HEADER},
            )

        return await call_next(request)
