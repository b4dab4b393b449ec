"""FastAPI exception handlers producing the ErrorResponse envelope."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from episodic.errors.exceptions import EpisodicError, PermissionDeniedError, ValidationError
from episodic.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def _render(request: Request, exc: EpisodicError) -> JSONResponse:
    error_response = ErrorResponse(
        error=ErrorDetail(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            trace_id=getattr(request.state, "trace_id", "unknown"),
            timestamp=datetime.now(timezone.utc),
        ),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(EpisodicError)
    async def episodic_error_handler(request: Request, exc: EpisodicError):
        if isinstance(exc, PermissionDeniedError):
            user = getattr(request.state, "user", {}) or {}
            logger.warning(
                "permission_denied",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "trace_id": getattr(request.state, "trace_id", "unknown"),
                    "user_sub": user.get("sub", "anonymous"),
                    "reason": str(exc),
                },
            )
        return _render(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        return _render(request, ValidationError("Request validation failed", {"errors": errors}))
