"""
Domain exceptions raised by services and mapped to HTTP error envelopes.
"""
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that carry an HTTP status and an error code."""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class BusinessRuleError(AppError):
    status_code = 400
    code = "BAD_REQUEST"


class AuthenticationError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDenied(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class RateNotFoundError(AppError):
    """No fare rate matched and the caller asked for strict pricing."""
    status_code = 422
    code = "RATE_NOT_FOUND"
