"""
Error taxonomy.

Every failure a handler can report maps to one of these classes.
The API layer turns them into `{"error": message}` responses with
the class's status code.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ValidationError(CRMError):
    """Malformed input: bad email, short password, missing field."""

    status_code = 400


class Conflict(CRMError):
    """Duplicate email, report already signed."""

    status_code = 400


class Unauthorized(CRMError):
    """Missing/invalid/expired credentials."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class SessionExpired(Unauthorized):
    """Refresh token unknown, expired, or already rotated."""

    def __init__(self, message: str = "Session expired"):
        super().__init__(message)


class Forbidden(CRMError):
    """Valid identity, insufficient role or capability."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class PendingApproval(Forbidden):
    """Authenticated but not yet approved by an administrator."""

    def __init__(self, message: str = "Account pending approval"):
        super().__init__(message)


class NotFound(CRMError):
    """Entity does not exist or is outside the caller's scope."""

    status_code = 404

    def __init__(self, resource: str = "Resource", resource_id: str | None = None):
        message = f"{resource} not found"
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message)


class InternalError(CRMError):
    status_code = 500


class StorageError(InternalError):
    """The relational or object store failed."""


class PartialFailure(InternalError):
    """A multi-step operation failed partway; compensation was attempted."""
