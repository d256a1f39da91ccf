"""
Account flows: register, login, refresh, logout, admin user creation.

Route handlers stay thin; every rule about who may obtain which
credentials lives here. Helpers that return sentinels (password and
token verification) are always checked and converted to errors here.
"""

from __future__ import annotations

import logging
import re
import secrets

from estate_crm.auth.capabilities import Capability
from estate_crm.auth.context import AuthContext
from estate_crm.auth.jwt import create_access_token, create_refresh_token
from estate_crm.auth.passwords import hash_password, verify_password
from estate_crm.auth.store import CredentialStore
from estate_crm.config import Settings, get_settings
from estate_crm.core.errors import (
    CRMError,
    Forbidden,
    PartialFailure,
    Unauthorized,
    ValidationError,
)
from estate_crm.core.models import AuthResponse, Role, UserInDB
from estate_crm.core.utils import utc_now_iso

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# =============================================================================
# Validation
# =============================================================================


def validate_email(email: str) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError("Invalid email format")
    return email.strip()


def validate_password(password: str, minimum: int | None = None) -> str:
    if minimum is None:
        minimum = get_settings().password_min_length
    if not isinstance(password, str) or len(password) < minimum:
        raise ValidationError(f"Password must be at least {minimum} characters")
    return password


def validate_full_name(full_name: str) -> str:
    if full_name is not None and not isinstance(full_name, str):
        raise ValidationError("Invalid value for full_name")
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name is required")
    return full_name


def parse_role(value: str | None) -> Role:
    role = Role.parse(value or Role.MANAGER.value)
    if role is None:
        raise ValidationError(f"Invalid role: {value}")
    return role


# =============================================================================
# Token issuance
# =============================================================================


async def issue_tokens(store: CredentialStore, user: UserInDB) -> AuthResponse:
    """Create an access token and a persisted refresh token for `user`."""
    refresh_token = create_refresh_token()
    await store.create_session(user.id, refresh_token)
    return AuthResponse(
        user=user.public(),
        access_token=create_access_token(user),
        refresh_token=refresh_token,
        expires_in=get_settings().jwt_access_token_expire_seconds,
    )


# =============================================================================
# Flows
# =============================================================================


async def register(store: CredentialStore, email: str, password: str, full_name: str) -> AuthResponse:
    """
    Self-service registration.

    New accounts are managers and unapproved: they can sign in but every
    protected route answers "pending approval" until an admin approves.
    """
    email = validate_email(email)
    validate_password(password)
    full_name = validate_full_name(full_name)

    user = await store.create_user(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role=Role.MANAGER,
        approved=False,
    )
    logger.info(f"Registered user {user.id}")
    return await issue_tokens(store, user)


async def login(store: CredentialStore, email: str, password: str) -> AuthResponse:
    """Authenticate by email + password. Never says which half was wrong."""
    user = await store.get_user_by_email(email or "")
    if user is None or not verify_password(password or "", user.password_hash):
        logger.warning("Failed login attempt")
        raise Unauthorized("Invalid credentials")
    return await issue_tokens(store, user)


async def refresh(store: CredentialStore, refresh_token: str) -> AuthResponse:
    """
    Rotate a refresh token: the old one is redeemed (and gone), a new
    access/refresh pair is returned.
    """
    session = await store.consume_session(refresh_token)
    user = await store.get_user(session.user_id)
    if user is None:
        raise Unauthorized("Session expired")
    logger.info(f"Rotated session for user {user.id}")
    return await issue_tokens(store, user)


async def logout(store: CredentialStore, refresh_token: str | None) -> None:
    if refresh_token and await store.revoke_session(refresh_token):
        logger.info("Revoked one session on logout")


async def logout_all(store: CredentialStore, ctx: AuthContext) -> int:
    count = await store.revoke_all_sessions(ctx.user_id)
    logger.info(f"Revoked {count} session(s) for user {ctx.user_id}")
    return count


async def rotate_secret_key(store: CredentialStore, ctx: AuthContext) -> str:
    """Issue a new report-signing key for the caller; returned only once."""
    secret_key = secrets.token_hex(16)
    await store.update_user(ctx.user_id, {"secret_key": secret_key})
    logger.info(f"Rotated report signing key for user {ctx.user_id}")
    return secret_key


async def create_user(
    store: CredentialStore,
    ctx: AuthContext,
    email: str,
    password: str,
    full_name: str,
    role: str | None = None,
    phone: str | None = None,
) -> UserInDB:
    """
    Admin-initiated account creation.

    Steps: insert the account, assign its role, approve it. These are
    separate writes; if a later one fails the account row is removed
    again and PartialFailure is raised so the caller can retry cleanly.

    Raises:
        Forbidden: caller lacks manage_users or may not assign `role`
        ValidationError: bad role, email, password, or name
        Conflict: email already registered
        PartialFailure: account was created but could not be completed
    """
    if not ctx.can(Capability.MANAGE_USERS):
        raise Forbidden("Insufficient permissions")

    target_role = parse_role(role)
    if not ctx.can_assign(target_role):
        if target_role == Role.TOP_MANAGER:
            raise Forbidden("Only superusers can create top managers")
        raise Forbidden(f"Insufficient permissions to create {target_role.value}")

    email = validate_email(email)
    validate_password(password)
    full_name = validate_full_name(full_name)

    user = await store.create_user(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone=phone,
    )

    try:
        completed = await store.update_user(
            user.id,
            {
                "role": target_role,
                "approved": True,
                "approved_at": utc_now_iso(),
                "approved_by": ctx.user_id,
            },
        )
        if completed is None:
            raise PartialFailure("Account disappeared while assigning its role")
    except CRMError as e:
        logger.error(f"Creating user {user.id} failed after insert: {e.message}")
        try:
            await store.delete_user(user.id)
        except CRMError:
            logger.exception(f"Rollback of user {user.id} failed; orphaned account remains")
            raise PartialFailure(
                f"User account {user.id} was created but role assignment failed "
                "and the account could not be removed; contact support"
            ) from e
        raise PartialFailure(
            "User account was created but role assignment failed; "
            "the account was rolled back, please retry"
        ) from e

    logger.info(f"User {ctx.user_id} created {target_role.value} {completed.id}")
    return completed


async def bootstrap_superuser(store: CredentialStore, settings: Settings | None = None) -> UserInDB | None:
    """Create the configured superuser on first start, if any is configured."""
    settings = settings or get_settings()
    if not settings.bootstrap_superuser_email or not settings.bootstrap_superuser_password:
        return None

    existing = await store.get_user_by_email(settings.bootstrap_superuser_email)
    if existing:
        return existing

    user = await store.create_user(
        email=validate_email(settings.bootstrap_superuser_email),
        password_hash=hash_password(validate_password(settings.bootstrap_superuser_password, settings.password_min_length)),
        full_name=settings.bootstrap_superuser_name,
        role=Role.SUPERUSER,
        approved=True,
        approved_at=utc_now_iso(),
    )
    logger.info(f"Bootstrapped superuser {user.id}")
    return user
