"""
Users resource.

Accounts are rows like any other for listing and reading, but every write
goes through the account rules: creation runs the admin create-user flow,
updates are checked against role assignment, and deletes revoke sessions.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status

from estate_crm.api.gateway import ResourceGateway
from estate_crm.api.resources import USERS
from estate_crm.auth import accounts
from estate_crm.auth.capabilities import Capability
from estate_crm.auth.context import AuthContext
from estate_crm.auth.policies import get_storage, require
from estate_crm.auth.store import CredentialStore
from estate_crm.core.errors import Forbidden, NotFound, ValidationError
from estate_crm.core.models import CreateUserRequest, public_user_row
from estate_crm.core.utils import utc_now_iso
from estate_crm.storage.base import StorageProvider

logger = logging.getLogger(__name__)

# Fields a user may change on their own account
PROFILE_FIELDS = frozenset({"full_name", "phone", "avatar_url"})

# Fields only an administrator may change, and never on their own account
ADMIN_FIELDS = frozenset({"email", "role", "approved"})


class UsersGateway(ResourceGateway):
    """Account rows with the administration rules applied to writes."""

    def serialize(self, row: dict[str, Any]) -> dict[str, Any]:
        return public_user_row(row)

    async def create(self, storage: StorageProvider, ctx: AuthContext, body: CreateUserRequest) -> dict[str, Any]:
        user = await accounts.create_user(
            CredentialStore(storage.metadata),
            ctx,
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            role=body.role,
            phone=body.phone,
        )
        return {"success": True, "user": user.public().model_dump(mode="json")}

    async def update(self, storage: StorageProvider, ctx: AuthContext, id: str, body: Any) -> dict[str, Any]:
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        store = CredentialStore(storage.metadata)
        target = await store.get_user(id)
        if target is None:
            raise NotFound("User", id)

        updates = {k: v for k, v in body.items() if k in PROFILE_FIELDS | ADMIN_FIELDS}
        if not updates:
            raise ValidationError("No fields to update")

        is_self = target.id == ctx.user_id
        admin_change = {k for k in updates if k in ADMIN_FIELDS}

        if is_self and admin_change:
            raise Forbidden("You cannot change your own role or approval")

        if not is_self or admin_change:
            if not ctx.can(Capability.MANAGE_USERS) or not ctx.can_assign(target.role):
                raise Forbidden("Insufficient permissions")

        for name in (PROFILE_FIELDS | {"email"}) & updates.keys():
            value = updates[name]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Invalid value for {name}")
        if "full_name" in updates:
            updates["full_name"] = accounts.validate_full_name(updates["full_name"])
        if "email" in updates:
            updates["email"] = accounts.validate_email(updates["email"]).lower()

        if "role" in updates:
            new_role = accounts.parse_role(updates["role"])
            if not ctx.can_assign(new_role):
                raise Forbidden(f"Insufficient permissions to assign {new_role.value}")
            updates["role"] = new_role

        if "approved" in updates:
            if not isinstance(updates["approved"], bool):
                raise ValidationError("Invalid value for approved")
            if updates["approved"]:
                updates["approved_at"] = utc_now_iso()
                updates["approved_by"] = ctx.user_id
            else:
                updates["approved_at"] = None
                updates["approved_by"] = None

        user = await store.update_user(id, updates)
        if user is None:
            raise NotFound("User", id)

        if "role" in updates and updates["role"] != target.role:
            logger.info(f"User {ctx.user_id} changed role of {id} to {updates['role'].value}")
        if "approved" in updates and updates["approved"] != target.approved:
            state = "approved" if updates["approved"] else "unapproved"
            logger.info(f"User {ctx.user_id} {state} {id}")
        return user.public().model_dump(mode="json")

    async def delete(self, storage: StorageProvider, ctx: AuthContext, id: str) -> dict[str, Any]:
        if not ctx.can(Capability.MANAGE_ALL_USERS):
            raise Forbidden("Insufficient permissions")
        if id == ctx.user_id:
            raise ValidationError("You cannot delete your own account")

        if not await CredentialStore(storage.metadata).delete_user(id):
            raise NotFound("User", id)
        logger.info(f"User {ctx.user_id} deleted user {id}")
        return {"success": True}

    def add_create_route(self, router: APIRouter) -> None:
        @router.post("", status_code=status.HTTP_201_CREATED, name="create_users")
        async def create_user(
            body: CreateUserRequest,
            ctx: AuthContext = Depends(require(Capability.MANAGE_USERS)),
            storage: StorageProvider = Depends(get_storage),
        ):
            """Admin-initiated account creation; the account starts approved."""
            return await self.create(storage, ctx, body)


gateway = UsersGateway(USERS)

