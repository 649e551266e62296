"""FORGE MES — JWT auth middleware: extracts the bearer token, sets request.state.user."""
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from mes.api.deps import CurrentUser
from mes.core.security import decode_token

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Decode a Bearer token from the Authorization header into request.state.user."""

    PUBLIC_PATHS = {
        "/health",
        "/api/v1/docs",
        "/api/v1/redoc",
        "/api/v1/openapi.json",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None

        path = request.url.path
        if path in self.PUBLIC_PATHS or path.startswith("/api/v1/docs") or path.startswith("/api/v1/redoc"):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            payload = decode_token(auth[7:].strip())
            if payload and payload.get("type") == "access":
                sub = payload.get("sub")
                try:
                    user_id = int(sub) if sub is not None else None
                except ValueError:
                    logger.warning("Rejected token with non-numeric subject %r", sub)
                    user_id = None
                if user_id is not None:
                    request.state.user = CurrentUser(
                        id=user_id,
                        email=payload.get("email") or "unknown",
                        role=payload.get("role", "OPERATOR"),
                    )
        return await call_next(request)
