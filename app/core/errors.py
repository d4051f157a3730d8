"""
Domain errors raised by the services and translated to responses by the routes
"""

from typing import Any, Optional


class GuestbookError(Exception):
    """Base error carrying a machine readable code"""

    error_code = "error"
    status_code = 400

    def __init__(self, message: str, error_code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details


class ValidationFailed(GuestbookError):
    error_code = "validation_failed"
    status_code = 422


class NotAuthenticated(GuestbookError):
    error_code = "not_authenticated"
    status_code = 401


class ProfileNotFound(GuestbookError):
    error_code = "profile_not_found"
    status_code = 404


class EventNotFound(GuestbookError):
    error_code = "event_not_found"
    status_code = 404


class SubmissionNotFound(GuestbookError):
    error_code = "submission_not_found"
    status_code = 404


class SlugTaken(GuestbookError):
    error_code = "slug_taken"
    status_code = 409


class StorageError(GuestbookError):
    error_code = "storage_error"
    status_code = 502


class PersistenceError(GuestbookError):
    error_code = "persistence_error"
    status_code = 502


class TooManyRecordings(GuestbookError):
    error_code = "too_many_recordings"
    status_code = 503
