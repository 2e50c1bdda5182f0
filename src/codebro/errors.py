"""Application error taxonomy.

Every error the API surfaces deliberately is an ``AppError``; the global
handler in ``codebro.middleware.error_handler`` renders it as
``{"detail": ..., "code": ...}`` with the matching HTTP status.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors with a stable code and HTTP status."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, **extra: Any) -> None:  # noqa: ANN401
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Please sign in to continue"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You don't have permission to access this"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "The resource you're looking for doesn't exist"


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input provided"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests, please try again later"


class UpstreamFailure(AppError):
    """A store read or write failed. The message shown to users stays generic."""

    status_code = 500
    code = "UPSTREAM_FAILURE"
    default_message = "Database operation failed"
