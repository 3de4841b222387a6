"""Domain errors for content, moderation, reports and roles.

Every service raises one of these; the API layer maps ``status_code`` and
``code`` onto the JSON error envelope. None of them are fatal.
"""
from __future__ import annotations


class ContentError(Exception):
    """Base class for Kitchen Commons domain errors."""

    code: str = "error"
    status_code: int = 400
    message: str = "Request could not be completed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(ContentError):
    """Bad input shape or length. ``details`` is safe to show field by field."""

    code = "validation_error"
    status_code = 422
    message = "Invalid request data"

    def __init__(self, details: list[dict[str, str]], message: str | None = None) -> None:
        super().__init__(message)
        self.details = details

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])


class AuthorizationError(ContentError):
    """Caller lacks the ownership or role the operation requires."""

    code = "forbidden"
    status_code = 403
    message = "You are not allowed to do that"


class NotFoundError(ContentError):
    code = "not_found"
    status_code = 404
    message = "Not found"


class InvalidStateTransition(ContentError):
    """The item's current status does not allow the requested transition."""

    code = "invalid_state"
    status_code = 409
    message = "Item is no longer pending, please refresh"


class PersistenceError(ContentError):
    """A store operation failed; the caller should re-fetch or retry."""

    code = "persistence_error"
    status_code = 503
    message = "Could not save changes, please try again"
