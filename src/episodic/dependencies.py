"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from episodic.errors.exceptions import PermissionDeniedError, UnauthorizedError
from episodic.services.engine import InteractionEngine


def get_engine(request: Request) -> InteractionEngine:
    """Return the interaction engine wired during startup."""
    return request.app.state.engine


async def get_current_user(request: Request) -> dict:
    """Return the authenticated user dict or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in (user or {}):
        raise UnauthorizedError(f"Authentication failed: {user['_auth_error']}")
    if not user or user.get("sub") in ("anonymous", ""):
        raise UnauthorizedError()
    return user


def require_role(*roles: str):
    """Return a dependency that enforces one of the given roles."""

    async def _check(user: dict = Depends(get_current_user)) -> dict:
        if not set(user.get("roles", [])).intersection(roles):
            raise PermissionDeniedError(f"Requires one of: {', '.join(roles)}")
        return user

    return _check


# Type aliases for dependency injection
Engine = Annotated[InteractionEngine, Depends(get_engine)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
ServiceCaller = Annotated[dict, Depends(require_role("service"))]
