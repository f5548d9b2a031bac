# projectmind/core/errors.py
"""
Error taxonomy for the assistant core.

Every error that can reach the response layer knows how to render itself
as a machine-checkable payload, so callers never have to ship a stack trace.
"""

from typing import Any, Dict, Optional


class ProjectMindError(Exception):
    """Base class for all handled errors raised by the core."""

    #: Suggested HTTP-equivalent status for web layers.
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ProjectMindError):
    """Malformed inbound request or settings. `details` maps field -> problem."""

    status_code = 400


class AuthorizationError(ProjectMindError):
    """The acting user may not touch the requested session/project/task."""

    status_code = 403


class NotFoundError(AuthorizationError):
    """
    Record missing or not owned by the caller.

    Raised the same way whether the record is absent or owned by another user.
    """

    status_code = 404


class StorageError(ProjectMindError):
    """Raised by storage collaborators when a write or lookup fails."""


class ActionExecutionError(StorageError):
    """A detected action could not be carried out."""
