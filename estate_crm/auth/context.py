"""
Auth context - the "who can do what" for each request.

This is the lightweight object passed to route handlers.
It contains everything needed to make authorization decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from estate_crm.auth.capabilities import Capability, can_assign_role, get_capabilities
from estate_crm.core.errors import Forbidden
from estate_crm.core.models import Role, UserInDB


@dataclass
class AuthContext:
    """
    Authorization context for a request.

    Built from the verified token subject re-resolved against the
    credential store, so `role` and `approved` are the stored values,
    never claims supplied by the client.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require(Capability.MANAGE_USERS))):
            if ctx.can(Capability.VIEW_ALL_DATA):
                ...
    """

    user_id: str
    email: str
    role: Role
    approved: bool = False
    full_name: str = ""

    _capabilities: frozenset[Capability] = field(default_factory=frozenset, repr=False)

    def __post_init__(self):
        """Compute capabilities from role."""
        self._capabilities = get_capabilities(self.role)

    @classmethod
    def from_user(cls, user: UserInDB) -> AuthContext:
        return cls(
            user_id=user.id,
            email=user.email,
            role=user.role,
            approved=user.approved,
            full_name=user.full_name,
        )

    @property
    def capabilities(self) -> frozenset[Capability]:
        """All capabilities this user has."""
        return self._capabilities

    def can(self, capability: Capability | str) -> bool:
        """
        Check if user has a capability.

        Usage:
            if ctx.can("manage_users"):
                # do something
        """
        if isinstance(capability, str) and not isinstance(capability, Capability):
            try:
                capability = Capability(capability)
            except ValueError:
                return False
        return capability in self._capabilities

    def can_any(self, *capabilities: Capability | str) -> bool:
        """Check if user has ANY of the capabilities."""
        return any(self.can(c) for c in capabilities)

    def can_assign(self, role: Role | str) -> bool:
        """May this user create or administer accounts with `role`?"""
        return can_assign_role(self.role, role)

    def require(self, capability: Capability | str) -> None:
        """
        Raise if user doesn't have capability.

        Usage:
            ctx.require("manage_users")  # raises if not allowed
        """
        if not self.can(capability):
            value = capability.value if isinstance(capability, Capability) else capability
            raise Forbidden(f"Permission denied: {value}")
