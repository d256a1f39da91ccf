# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /api/auth/register     - Create account (unapproved manager)
#   POST /api/auth/login        - Get tokens
#   POST /api/auth/refresh      - Rotate refresh token, get new pair
#   POST /api/auth/logout       - Revoke one refresh token
#   POST /api/auth/logout-all   - Revoke every session of the caller
#   GET  /api/auth/me           - Current user (works before approval)
#   POST /api/auth/secret-key   - Issue a new report-signing key
#
# =============================================================================

from fastapi import APIRouter, Depends, Response, status

from estate_crm.auth import accounts
from estate_crm.auth.context import AuthContext
from estate_crm.auth.policies import get_credential_store, require_approved, require_auth
from estate_crm.auth.store import CredentialStore
from estate_crm.core.errors import NotFound
from estate_crm.core.models import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    UserPublic,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Public Endpoints
# =============================================================================


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, store: CredentialStore = Depends(get_credential_store)):
    """
    Create a new account.

    Returns tokens immediately; the account stays pending until approved.
    """
    return await accounts.register(store, data.email, data.password, data.full_name)


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, store: CredentialStore = Depends(get_credential_store)):
    """Authenticate and get tokens."""
    return await accounts.login(store, data.email, data.password)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(data: RefreshRequest, store: CredentialStore = Depends(get_credential_store)):
    """Exchange a refresh token for a new pair. The old token stops working."""
    return await accounts.refresh(store, data.refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(data: LogoutRequest, store: CredentialStore = Depends(get_credential_store)):
    """Revoke the given refresh token. Unknown tokens are ignored."""
    await accounts.logout(store, data.refresh_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Protected Endpoints
# =============================================================================


@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT)
async def logout_all(
    ctx: AuthContext = Depends(require_auth()),
    store: CredentialStore = Depends(get_credential_store),
):
    """Sign out on every device."""
    await accounts.logout_all(store, ctx)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserPublic)
async def get_current_user(
    ctx: AuthContext = Depends(require_auth()),
    store: CredentialStore = Depends(get_credential_store),
):
    """Get the current authenticated user, approved or not."""
    user = await store.get_user(ctx.user_id)
    if not user:
        raise NotFound("User")
    return user.public()


@router.post("/secret-key")
async def issue_secret_key(
    ctx: AuthContext = Depends(require_approved()),
    store: CredentialStore = Depends(get_credential_store),
):
    """Issue (or rotate) the caller's report-signing key. Shown once."""
    return {"secret_key": await accounts.rotate_secret_key(store, ctx)}
