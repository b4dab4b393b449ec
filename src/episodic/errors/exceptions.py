"""Exception taxonomy for the interaction engine."""


class EpisodicError(Exception):
    """Base exception carrying an error code and HTTP status."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(EpisodicError):
    """Request payload failed validation."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class UnauthorizedError(EpisodicError):
    """No actor, or the actor does not match the one required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("UNAUTHORIZED", message, status_code=401)


class PermissionDeniedError(EpisodicError):
    """Actor tried to act on another user's private data."""

    def __init__(self, message: str = "Not allowed to act on this resource"):
        super().__init__("PERMISSION_DENIED", message, status_code=403)


class NotFoundError(EpisodicError):
    """Target or notification does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class InvalidTargetError(EpisodicError):
    """Malformed target key or unsupported target/reaction type."""

    def __init__(self, message: str, details=None):
        super().__init__("INVALID_TARGET", message, details, status_code=422)


class TransientStoreConflictError(EpisodicError):
    """Transaction retries exhausted; the caller may retry later."""

    def __init__(self, message: str, attempts: int):
        super().__init__(
            "TRANSIENT_STORE_CONFLICT",
            message,
            {"attempts": attempts, "retryable": True},
            status_code=409,
        )
