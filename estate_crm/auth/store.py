"""
Credential store.

Users and refresh-token sessions on top of MetadataStorage. This is the
only module that reads or writes the `users` and `sessions` collections
directly; everything else goes through these functions.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from estate_crm.config import get_settings
from estate_crm.core.errors import Conflict, SessionExpired
from estate_crm.core.models import Role, SessionRecord, UserInDB
from estate_crm.core.utils import generate_id, isoformat, parse_timestamp, utc_now, utc_now_iso
from estate_crm.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Persistence for accounts and sessions."""

    def __init__(self, metadata: MetadataStorage):
        self.metadata = metadata

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, user_id: str) -> UserInDB | None:
        row = await self.metadata.get(Collections.USERS, user_id)
        return UserInDB.model_validate(row) if row else None

    async def get_user_by_email(self, email: str) -> UserInDB | None:
        row = await self.metadata.find_one(Collections.USERS, {"email": normalize_email(email)})
        return UserInDB.model_validate(row) if row else None

    async def create_user(
        self,
        email: str,
        password_hash: str,
        full_name: str,
        role: Role = Role.MANAGER,
        approved: bool = False,
        **extra: Any,
    ) -> UserInDB:
        """
        Insert a new account.

        Raises:
            Conflict: email already registered
        """
        email = normalize_email(email)
        if await self.get_user_by_email(email):
            raise Conflict("User already exists")

        now = utc_now_iso()
        row = {
            **extra,
            "id": generate_id(),
            "email": email,
            "password_hash": password_hash,
            "full_name": full_name,
            "role": role.value,
            "approved": approved,
            "created_at": now,
            "updated_at": now,
        }
        try:
            stored = await self.metadata.insert(Collections.USERS, row)
        except Conflict:
            # Lost a race with a concurrent registration
            raise Conflict("User already exists") from None
        return UserInDB.model_validate(stored)

    async def update_user(self, user_id: str, updates: dict[str, Any]) -> UserInDB | None:
        updates = {**updates, "updated_at": utc_now_iso()}
        if isinstance(updates.get("role"), Role):
            updates["role"] = updates["role"].value
        row = await self.metadata.update(Collections.USERS, user_id, updates)
        return UserInDB.model_validate(row) if row else None

    async def delete_user(self, user_id: str) -> bool:
        await self.metadata.delete_where(Collections.SESSIONS, {"user_id": user_id})
        return await self.metadata.delete(Collections.USERS, user_id)

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, user_id: str, refresh_token: str) -> SessionRecord:
        settings = get_settings()
        now = utc_now()
        row = {
            "id": generate_id(),
            "user_id": user_id,
            "refresh_token": refresh_token,
            "expires_at": isoformat(now + timedelta(days=settings.jwt_refresh_token_expire_days)),
            "created_at": isoformat(now),
        }
        stored = await self.metadata.insert(Collections.SESSIONS, row)
        return SessionRecord.model_validate(stored)

    async def get_session(self, refresh_token: str) -> SessionRecord | None:
        row = await self.metadata.find_one(Collections.SESSIONS, {"refresh_token": refresh_token})
        return SessionRecord.model_validate(row) if row else None

    async def consume_session(self, refresh_token: str) -> SessionRecord:
        """
        Redeem a refresh token exactly once.

        The session row is removed with a conditional delete; only the
        caller whose delete actually removed the row may proceed, so two
        concurrent refreshes with the same token cannot both succeed.

        Raises:
            SessionExpired: token unknown, expired, or already redeemed
        """
        session = await self.get_session(refresh_token)
        if session is None:
            raise SessionExpired()

        deleted = await self.metadata.delete_where(
            Collections.SESSIONS,
            {"id": session.id, "refresh_token": refresh_token},
        )
        if deleted != 1:
            logger.warning(f"Refresh token for user {session.user_id} was already redeemed")
            raise SessionExpired()

        expires_at = parse_timestamp(session.expires_at)
        if expires_at is None or expires_at <= utc_now():
            raise SessionExpired()

        return session

    async def revoke_session(self, refresh_token: str) -> bool:
        return await self.metadata.delete_where(Collections.SESSIONS, {"refresh_token": refresh_token}) > 0

    async def revoke_all_sessions(self, user_id: str) -> int:
        return await self.metadata.delete_where(Collections.SESSIONS, {"user_id": user_id})
