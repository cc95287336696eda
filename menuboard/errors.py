"""
Error taxonomy shared by the routes and the exception handlers in app.py.
"""

from __future__ import annotations


class ApiError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(ApiError):
    status_code = 401
    default_message = "No token, authorization denied"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "Access denied: Requires hotel role"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, message: str | None = None, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class ExternalServiceError(ApiError):
    """A collaborator (media store, push service, SMS gateway) failed."""

    status_code = 500
    default_message = "External service error"
