# =============================================================================
# JWT Token Service
# =============================================================================
#
#   - Access tokens: HS256 JWTs, short-lived, verified by signature + expiry
#     only (never looked up server-side)
#   - Refresh tokens: opaque random hex, persisted as sessions so they can
#     be revoked and rotated (see estate_crm.auth.store)
#
# =============================================================================

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import ValidationError as PydanticValidationError

from estate_crm.config import get_settings
from estate_crm.core.models import AccessTokenPayload, UserInDB
from estate_crm.core.utils import utc_now

logger = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 32
REQUIRED_CLAIMS = ["sub", "email", "role", "iat", "exp"]


# =============================================================================
# Token Creation
# =============================================================================


def create_access_token(user: UserInDB, expires_in: int | None = None) -> str:
    """
    Create a signed access token for `user`.

    Args:
        user: The account the token speaks for
        expires_in: Lifetime in seconds (defaults to configured TTL)
    """
    settings = get_settings()
    now = utc_now().replace(microsecond=0)
    lifetime = settings.jwt_access_token_expire_seconds if expires_in is None else expires_in

    payload: dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token() -> str:
    """Create an opaque refresh token (32 random bytes, hex)."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


# =============================================================================
# Token Validation
# =============================================================================


def verify_access_token(token: str) -> AccessTokenPayload | None:
    """
    Decode and validate an access token.

    Returns:
        The payload, or None when the token is malformed, tampered
        with, signed with another key, or expired. Never raises.
    """
    settings = get_settings()
    if not isinstance(token, str) or token.count(".") != 2:
        return None

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": REQUIRED_CLAIMS},
        )
        return AccessTokenPayload(
            sub=claims["sub"],
            email=claims["email"],
            role=claims["role"],
            iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Rejected expired access token")
        return None
    except (jwt.InvalidTokenError, PydanticValidationError, TypeError, ValueError, OverflowError):
        return None
