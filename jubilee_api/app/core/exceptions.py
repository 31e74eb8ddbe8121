"""
Error taxonomy shared by services and endpoints.

Services raise these exceptions; ``main.create_app`` registers a single
handler that renders any ``AppError`` as ``{"message": ...}`` with the
exception's status code (validation failures additionally carry an
``errors`` mapping of field name to message).
"""

from typing import Dict, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(AppError):
    """One or more submitted fields are invalid."""

    status_code = 400
    default_message = "Please fix the highlighted errors."

    def __init__(self, errors: Optional[Dict[str, str]] = None, message: Optional[str] = None) -> None:
        self.errors: Dict[str, str] = dict(errors or {})
        if message is None and len(self.errors) == 1:
            message = next(iter(self.errors.values()))
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden: insufficient privileges"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class RateLimitError(AppError):
    status_code = 429
    default_message = "Too many requests"


class UpstreamError(AppError):
    """An external dependency (media store, database, Google) failed.

    The message is always generic; details belong in the log.
    """

    status_code = 500
    default_message = "Upstream service failed"
