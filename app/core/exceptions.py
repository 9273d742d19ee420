"""Typed application errors.

Services raise these; the handlers in app.main turn them into JSON responses.
Raw store errors (IntegrityError etc.) are translated inside the service that
issued the write and never reach the HTTP layer.
"""
from typing import Any, Optional


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppException):
    """Malformed or missing input."""
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppException):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Could not validate credentials", details=None):
        super().__init__(message, details)


class ForbiddenError(AppException):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have permission to access this resource", details=None):
        super().__init__(message, details)


class NotFoundError(AppException):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message, {"resource": resource})


class ConflictError(AppException):
    """Uniqueness violation: duplicate business id, already-linked entry, number race."""
    status_code = 409
    code = "CONFLICT"
