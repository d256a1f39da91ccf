"""
Reports resource and report signing.

A report is signed with the author's secret key (see
POST /api/auth/secret-key). The signature is a SHA-256 digest over the
report id, its period and the key; once signed the report is frozen.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends

from estate_crm.api.gateway import ResourceGateway
from estate_crm.api.resources import REPORTS
from estate_crm.auth.context import AuthContext
from estate_crm.auth.policies import get_storage, require_approved
from estate_crm.auth.store import CredentialStore
from estate_crm.core.errors import Conflict, Forbidden, NotFound, Unauthorized
from estate_crm.core.models import SignReportRequest
from estate_crm.core.utils import utc_now_iso
from estate_crm.storage.base import StorageProvider

logger = logging.getLogger(__name__)

SIGNED = "signed"


def report_signature(report: dict[str, Any], secret_key: str) -> str:
    payload = f"{report['id']}-{report['period_start']}-{report['period_end']}-{secret_key}"
    return hashlib.sha256(payload.encode()).hexdigest()


class ReportsGateway(ResourceGateway):
    """Reports; signed reports can no longer be edited."""

    async def update(self, storage: StorageProvider, ctx: AuthContext, id: str, body: Any) -> dict[str, Any]:
        report = await self.fetch(storage, ctx, id, write=True)
        if report.get("signature"):
            raise Conflict("Signed reports cannot be modified")
        return await super().update(storage, ctx, id, body)

    async def sign(
        self,
        storage: StorageProvider,
        ctx: AuthContext,
        id: str,
        secret_key: str,
    ) -> dict[str, Any]:
        """
        Sign the caller's own report.

        Raises:
            NotFound: report absent or not visible to the caller
            Forbidden: report belongs to someone else
            Conflict: already signed
            Unauthorized: secret key missing or wrong
        """
        report = await self.fetch(storage, ctx, id)
        if report[self.spec.owner_field] != ctx.user_id:
            raise Forbidden("Only the author can sign a report")
        if report.get("signature"):
            raise Conflict("Report is already signed")

        user = await CredentialStore(storage.metadata).get_user(ctx.user_id)
        if not secret_key or user is None or not user.secret_key:
            raise Unauthorized("Invalid secret key")
        if not secrets.compare_digest(secret_key.encode(), user.secret_key.encode()):
            logger.warning(f"User {ctx.user_id} failed to sign report {id}")
            raise Unauthorized("Invalid secret key")

        now = utc_now_iso()
        updated = await storage.metadata.update(
            self.spec.collection,
            id,
            {
                "signature": report_signature(report, secret_key),
                "signed_at": now,
                "sent_at": now,
                "status": SIGNED,
                "updated_at": now,
            },
        )
        if updated is None:
            raise NotFound(self.spec.label, id)

        logger.info(f"User {ctx.user_id} signed report {id}")
        return self.serialize(updated)

    def build_router(self) -> APIRouter:
        router = super().build_router()

        @router.post("/{item_id}/sign", name="sign_reports")
        async def sign_report(
            item_id: str,
            data: SignReportRequest,
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            """Sign a report with the caller's secret key."""
            return await self.sign(storage, ctx, item_id, data.secret_key)

        return router


reports = ReportsGateway(REPORTS)
