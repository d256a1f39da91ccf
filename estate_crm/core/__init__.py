"""
Core: error taxonomy, account models and shared helpers.
"""

from estate_crm.core.errors import (
    CRMError,
    Conflict,
    Forbidden,
    InternalError,
    NotFound,
    PartialFailure,
    PendingApproval,
    SessionExpired,
    StorageError,
    Unauthorized,
    ValidationError,
)
from estate_crm.core.models import Role, UserInDB, UserPublic
from estate_crm.core.utils import generate_id, utc_now

__all__ = [
    "CRMError",
    "Conflict",
    "Forbidden",
    "InternalError",
    "NotFound",
    "PartialFailure",
    "PendingApproval",
    "SessionExpired",
    "StorageError",
    "Unauthorized",
    "ValidationError",
    "Role",
    "UserInDB",
    "UserPublic",
    "generate_id",
    "utc_now",
]
