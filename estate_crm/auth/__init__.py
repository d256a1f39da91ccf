"""
Authentication and authorization.

- passwords: PBKDF2 hashing
- jwt: access tokens + opaque refresh tokens
- store: users and sessions
- capabilities: the role → capability table
- policies: FastAPI dependencies (bearer auth, approval gate, capability checks)
"""

from estate_crm.auth.capabilities import (
    Capability,
    can_assign_role,
    get_capabilities,
    has_permission,
)
from estate_crm.auth.context import AuthContext
from estate_crm.auth.jwt import create_access_token, create_refresh_token, verify_access_token
from estate_crm.auth.passwords import hash_password, verify_password
from estate_crm.auth.policies import (
    Policy,
    authenticate,
    require,
    require_any,
    require_approved,
    require_auth,
)
from estate_crm.auth.store import CredentialStore

__all__ = [
    # Main interface
    "require",
    "require_any",
    "require_approved",
    "require_auth",
    "authenticate",
    "AuthContext",
    "Policy",
    # Permissions
    "Capability",
    "can_assign_role",
    "get_capabilities",
    "has_permission",
    # Credentials
    "CredentialStore",
    "create_access_token",
    "create_refresh_token",
    "verify_access_token",
    "hash_password",
    "verify_password",
]
