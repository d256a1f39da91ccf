"""
Capabilities and roles.

This defines WHAT users can do, not HOW we check it.
The actual checking happens in policies.py and the resource gateway.
This table is the single authority: no handler keeps its own list.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from estate_crm.core.models import Role


class Capability(str, Enum):
    """
    Named actions checked against a role's fixed set.

    The "own" variants limit the holder to rows they created or are
    assigned to; the "all" variants lift that limit.
    """

    # Accounts
    MANAGE_USERS = "manage_users"
    MANAGE_ALL_USERS = "manage_all_users"
    MANAGE_MANAGERS = "manage_managers"

    # Reports
    MANAGE_REPORTS = "manage_reports"
    MANAGE_ALL_REPORTS = "manage_all_reports"
    MANAGE_OWN_REPORTS = "manage_own_reports"

    # Properties
    MANAGE_PROPERTIES = "manage_properties"
    MANAGE_ALL_PROPERTIES = "manage_all_properties"
    MANAGE_OWN_PROPERTIES = "manage_own_properties"

    # Read everything, including personal resources
    VIEW_ALL_DATA = "view_all_data"


# =============================================================================
# Capability Mappings
# =============================================================================


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPERUSER: frozenset({
        Capability.MANAGE_USERS,
        Capability.MANAGE_ALL_USERS,
        Capability.MANAGE_REPORTS,
        Capability.MANAGE_ALL_REPORTS,
        Capability.MANAGE_PROPERTIES,
        Capability.MANAGE_ALL_PROPERTIES,
        Capability.VIEW_ALL_DATA,
    }),
    Role.TOP_MANAGER: frozenset({
        Capability.MANAGE_USERS,
        Capability.MANAGE_MANAGERS,
        Capability.MANAGE_REPORTS,
        Capability.MANAGE_ALL_REPORTS,
        Capability.MANAGE_PROPERTIES,
        Capability.MANAGE_ALL_PROPERTIES,
    }),
    Role.MANAGER: frozenset({
        Capability.MANAGE_OWN_REPORTS,
        Capability.MANAGE_OWN_PROPERTIES,
    }),
}


# Which roles each role may create, promote to, or administer
ASSIGNABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.SUPERUSER: frozenset(Role),
    Role.TOP_MANAGER: frozenset({Role.MANAGER}),
    Role.MANAGER: frozenset(),
}


def get_capabilities(role: Role | str | None) -> frozenset[Capability]:
    """All capabilities of a role; empty for unknown roles."""
    parsed = Role.parse(role)
    if parsed is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(parsed, frozenset())


def has_permission(role: Role | str | None, action: Capability | str | Any) -> bool:
    """
    Exact membership test of `action` in the role's capability set.

    Unknown roles and unknown actions are never permitted.
    """
    if isinstance(action, str) and not isinstance(action, Capability):
        try:
            action = Capability(action)
        except ValueError:
            return False
    if not isinstance(action, Capability):
        return False
    return action in get_capabilities(role)


def can_assign_role(actor_role: Role | str | None, target_role: Role | str | None) -> bool:
    """
    May a user with `actor_role` create (or administer) a `target_role` user?

    superuser → any role; top_manager → managers only; manager → nobody.
    """
    actor = Role.parse(actor_role)
    target = Role.parse(target_role)
    if actor is None or target is None:
        return False
    return target in ASSIGNABLE_ROLES.get(actor, frozenset())
