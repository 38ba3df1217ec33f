# tasktracker/errors.py
"""Error types raised by the task tracker core and mapped to HTTP responses."""

from typing import Any, Optional


class TaskTrackerError(Exception):
    """Base exception for the task tracker."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(TaskTrackerError):
    """Missing or invalid input."""

    status_code = 400


class AuthorizationError(TaskTrackerError):
    """Missing/invalid credentials, or a resource owned by someone else."""

    status_code = 401


class NotFoundError(TaskTrackerError):
    """Resource id does not resolve."""

    status_code = 404


class InternalError(TaskTrackerError):
    """Store failure or other unexpected condition."""

    status_code = 500
