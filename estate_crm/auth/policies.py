"""
Policies - the clean interface for route authorization.

Just use: `ctx: AuthContext = Depends(require(Capability.MANAGE_USERS))`

Design:
- `authenticate` extracts the bearer token, verifies it, and re-resolves
  the subject against the credential store (stored role wins over claims)
- `require()` layers the approval gate and capability checks on top
- If denied, raises 401/403 automatically
- If allowed, returns AuthContext for the route to use
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from estate_crm.auth.capabilities import Capability
from estate_crm.auth.context import AuthContext
from estate_crm.auth.jwt import verify_access_token
from estate_crm.auth.store import CredentialStore
from estate_crm.core.errors import Forbidden, PendingApproval, Unauthorized
from estate_crm.integrations.sentry import set_user
from estate_crm.storage.base import StorageProvider

logger = logging.getLogger(__name__)

# Optional bearer (doesn't fail if no token; we raise our own 401)
optional_bearer = HTTPBearer(auto_error=False)


# =============================================================================
# Storage from app state
# =============================================================================


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_credential_store(storage: StorageProvider = Depends(get_storage)) -> CredentialStore:
    return CredentialStore(storage.metadata)


# =============================================================================
# Authentication
# =============================================================================


async def authenticate(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
    store: CredentialStore = Depends(get_credential_store),
) -> AuthContext:
    """
    Resolve the caller from `Authorization: Bearer <token>`.

    No silent refresh: an expired access token is a 401 and the client
    must call /api/auth/refresh itself.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Unauthorized")

    payload = verify_access_token(credentials.credentials)
    if payload is None:
        raise Unauthorized("Invalid or expired token")

    user = await store.get_user(payload.sub)
    if user is None:
        logger.warning(f"Token subject {payload.sub} has no account")
        raise Unauthorized("Unauthorized")

    set_user(user.id, user.role.value)
    return AuthContext.from_user(user)


# =============================================================================
# Policy
# =============================================================================


class Policy:
    """
    A policy that can be checked.

        Policy()                                    # approved users
        Policy([Capability.MANAGE_USERS])           # all listed
        Policy([a, b], require_all=False)           # any listed
    """

    def __init__(
        self,
        capabilities: list[Capability] | None = None,
        require_all: bool = True,
        require_approval: bool = True,
    ):
        self.capabilities = capabilities or []
        self.require_all_caps = require_all
        self.require_approval = require_approval

    def check(self, ctx: AuthContext) -> None:
        """Raise if `ctx` does not satisfy this policy."""
        # Approval gate comes before any role check
        if self.require_approval and not ctx.approved:
            raise PendingApproval()

        if not self.capabilities:
            return

        if self.require_all_caps:
            missing = [c.value for c in self.capabilities if not ctx.can(c)]
            if missing:
                raise Forbidden(f"Missing permissions: {', '.join(missing)}")
        elif not ctx.can_any(*self.capabilities):
            wanted = ", ".join(c.value for c in self.capabilities)
            raise Forbidden(f"Requires one of: {wanted}")


# =============================================================================
# Main Interface - the require() function
# =============================================================================


def require(*capabilities: Capability, require_approval: bool = True) -> Callable:
    """
    Require an approved caller holding all `capabilities`.

    Usage:
        @router.delete("/users/{user_id}")
        async def delete_user(
            user_id: str,
            ctx: AuthContext = Depends(require(Capability.MANAGE_ALL_USERS)),
        ):
            ...
    """
    return _create_dependency(Policy(list(capabilities), require_approval=require_approval))


def require_any(*capabilities: Capability) -> Callable:
    """Require ANY of the listed capabilities."""
    return _create_dependency(Policy(list(capabilities), require_all=False))


def require_auth() -> Callable:
    """Valid token only; unapproved accounts allowed (e.g. /auth/me)."""
    return _create_dependency(Policy(require_approval=False))


def require_approved() -> Callable:
    """Valid token from an approved account, no specific capability."""
    return _create_dependency(Policy())


def _create_dependency(policy: Policy) -> Callable:
    """Create a FastAPI Depends from a policy."""

    async def dependency(ctx: AuthContext = Depends(authenticate)) -> AuthContext:
        policy.check(ctx)
        return ctx

    return dependency
