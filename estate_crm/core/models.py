"""
Core data models for accounts and sessions.

Business entities (properties, clients, deals, ...) are plain rows
declared in `estate_crm.storage.schema`; only the account side of the
system needs typed models because it carries invariants.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field


class Role(str, Enum):
    """Platform-wide role. Closed set; stored as its value."""

    SUPERUSER = "superuser"
    TOP_MANAGER = "top_manager"
    MANAGER = "manager"

    @classmethod
    def parse(cls, value: Any) -> Role | None:
        """Return the Role for `value`, or None if it is not a known role."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except (TypeError, ValueError):
            return None


# =============================================================================
# Users
# =============================================================================


class UserInDB(BaseModel):
    """User row as stored, including secrets."""

    id: str
    email: str
    password_hash: str
    full_name: str
    role: Role = Role.MANAGER
    phone: str | None = None
    avatar_url: str | None = None
    approved: bool = False
    approved_at: str | None = None
    approved_by: str | None = None
    secret_key: str | None = None
    created_at: str
    updated_at: str

    def public(self) -> UserPublic:
        return UserPublic.model_validate(self.model_dump(exclude={"password_hash", "secret_key"}))


class UserPublic(BaseModel):
    """User data returned to clients (no secrets)."""

    id: str
    email: str
    full_name: str
    role: Role
    phone: str | None = None
    avatar_url: str | None = None
    approved: bool
    approved_at: str | None = None
    approved_by: str | None = None
    created_at: str
    updated_at: str


PRIVATE_USER_FIELDS = frozenset({"password_hash", "secret_key"})


def public_user_row(row: dict[str, Any]) -> dict[str, Any]:
    """Strip secrets from a raw users row."""
    return {k: v for k, v in row.items() if k not in PRIVATE_USER_FIELDS}


# =============================================================================
# Sessions & Tokens
# =============================================================================


class SessionRecord(BaseModel):
    """A persisted refresh token."""

    id: str
    user_id: str
    refresh_token: str
    expires_at: str
    created_at: str


class AccessTokenPayload(BaseModel):
    """Claims carried by an access token."""

    sub: str
    email: str
    role: str
    iat: datetime
    exp: datetime


class AuthResponse(BaseModel):
    user: UserPublic
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


# =============================================================================
# Requests
# =============================================================================


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str = Field(min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


class CreateUserRequest(BaseModel):
    """Admin-initiated account creation."""

    email: EmailStr
    password: str
    full_name: str = Field(min_length=1, max_length=200)
    role: str = Role.MANAGER.value
    phone: str | None = None


class SignReportRequest(BaseModel):
    secret_key: str = ""
