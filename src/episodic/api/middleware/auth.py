"""JWT Bearer authentication middleware."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from episodic.logging_config import bind_request_context
from episodic.security import decode_access_token

logger = logging.getLogger(__name__)

_ANONYMOUS = {"sub": "anonymous", "roles": []}

# Paths that do not require authentication
_PUBLIC_PATHS = {
    "/api/v1/health",
    "/api/v1/health/live",
    "/api/v1/health/ready",
    "/openapi.json",
}


class AuthMiddleware(BaseHTTPMiddleware):
    """Validate the Bearer token and attach the caller to ``request.state.user``.

    Routes decide whether an anonymous caller is acceptable; this middleware
    never rejects a request by itself.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if path in _PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc"):
            request.state.user = dict(_ANONYMOUS)
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            request.state.user = self._validate_jwt(auth_header[7:])
        else:
            request.state.user = dict(_ANONYMOUS)

        sub = request.state.user.get("sub")
        if sub and sub != "anonymous":
            bind_request_context(getattr(request.state, "trace_id", "unknown"), user_id=sub)
        return await call_next(request)

    @staticmethod
    def _validate_jwt(token: str) -> dict:
        try:
            payload = decode_access_token(token)
        except ValueError:
            return {**_ANONYMOUS, "_auth_error": "invalid_token"}

        if payload.get("type") != "access":
            return {**_ANONYMOUS, "_auth_error": "not_access_token"}

        return {"sub": payload.get("sub", ""), "roles": payload.get("roles", [])}
