"""
Error taxonomy for the Behavior CRM backend.

Every service either returns a value or raises one of these. None of them are
retried internally; the API layer maps each kind to an HTTP status in main.py.

    UnauthenticatedError  -> 401  no current user
    ForbiddenError        -> 403  mutation of another user's record
    NotFoundError         -> 404  referenced entity absent
    ValidationError       -> 400  malformed request parameters
    PersistenceError      -> 502  storage collaborator reported an error
"""

from typing import Optional


class CRMError(Exception):
    """Base class for all application errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(CRMError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(CRMError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(CRMError):
    status_code = 404


class ValidationError(CRMError):
    status_code = 400


class PersistenceError(CRMError):
    """
    Raised when the storage collaborator fails.

    The underlying driver message is kept on the instance so callers can log
    it; "no matching rows" is never reported through this error.
    """

    status_code = 502

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause
