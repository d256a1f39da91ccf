"""
Resource API gateway.

Translates REST verbs on /api/{resource} into storage operations:

    GET    /api/{resource}        → list (sort, filters, pagination)
    GET    /api/{resource}/{id}   → fetch one
    POST   /api/{resource}        → insert
    PUT    /api/{resource}/{id}   → partial update
    DELETE /api/{resource}/{id}   → delete

Every request is turned into an explicit ResourceQuery (or a single-row
operation) after the approval gate and scope rules have been applied.
Rows outside the caller's scope behave exactly like missing rows.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy import Boolean, Column, Float, Integer, JSON, String

from estate_crm.api.resources import ResourceSpec, Scope
from estate_crm.auth.capabilities import Capability
from estate_crm.auth.context import AuthContext
from estate_crm.auth.policies import get_storage, require_approved
from estate_crm.core.errors import NotFound, ValidationError
from estate_crm.core.utils import generate_id, utc_now_iso
from estate_crm.storage.base import ResourceQuery, SortOrder, StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500
RESERVED_PARAMS = frozenset({"sort", "limit", "offset"})

TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
FALSE_STRINGS = frozenset({"false", "0", "no", "off"})

# Integer columns are stored as signed 64-bit values
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


# =============================================================================
# Request translation
# =============================================================================


def parse_sort(spec: ResourceSpec, raw: str | None) -> SortOrder:
    """
    `created_at` ascending, `-created_at` descending.

    Columns outside the resource's allow-list fall back to the default
    order instead of reaching the database.
    """
    if not raw:
        return spec.default_sort
    descending = raw.startswith("-")
    column = raw[1:] if descending else raw
    if column not in spec.sortable:
        return spec.default_sort
    return SortOrder(column, descending)


def coerce_value(column: Column, value: Any) -> Any:
    """Convert a body or query value to the column's Python type."""
    if value is None:
        return None

    invalid = ValidationError(f"Invalid value for {column.name}")
    column_type = column.type

    if isinstance(column_type, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.lower() in TRUE_STRINGS | FALSE_STRINGS:
            return value.lower() in TRUE_STRINGS
        raise invalid

    if isinstance(column_type, Integer):
        if isinstance(value, bool):
            raise invalid
        if isinstance(value, float) and not (math.isfinite(value) and value.is_integer()):
            raise invalid
        try:
            result = int(value)
        except (TypeError, ValueError, OverflowError):
            raise invalid from None
        if not INT64_MIN <= result <= INT64_MAX:
            raise invalid
        return result

    if isinstance(column_type, Float):
        if isinstance(value, bool):
            raise invalid
        try:
            result = float(value)
        except (TypeError, ValueError, OverflowError):
            raise invalid from None
        if not math.isfinite(result):
            raise invalid
        return result

    if isinstance(column_type, String):
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise invalid

    if isinstance(column_type, JSON):
        return value

    return value


def parse_filters(spec: ResourceSpec, params: Mapping[str, str]) -> dict[str, Any]:
    """Equality filters from query params; unknown and empty params are ignored."""
    filters: dict[str, Any] = {}
    for name, raw in params.items():
        if name in RESERVED_PARAMS or name not in spec.filterable or raw == "":
            continue
        filters[name] = coerce_value(spec.table.c[name], raw)
    return filters


def parse_int(params: Mapping[str, str], name: str, default: int, minimum: int, maximum: int | None = None) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
    value = max(value, minimum)
    if maximum is not None:
        value = min(value, maximum)
    return value


def scope_filter(spec: ResourceSpec, ctx: AuthContext, write: bool = False) -> dict[str, Any] | None:
    """
    OR-group of equality tests limiting rows to the caller.

    Returns None when the caller may see (or change) every row.
    """
    if spec.scope is Scope.SHARED:
        return None
    if spec.scope is Scope.OWNED and spec.all_capability and ctx.can(spec.all_capability):
        return None
    if not write and ctx.can(Capability.VIEW_ALL_DATA):
        return None

    group = {spec.owner_field: ctx.user_id}
    if spec.assignee_field:
        group[spec.assignee_field] = ctx.user_id
    return group


def in_scope(row: dict[str, Any], group: dict[str, Any] | None) -> bool:
    if group is None:
        return True
    return any(row.get(name) == value for name, value in group.items())


# =============================================================================
# Gateway
# =============================================================================


class ResourceGateway:
    """
    Generic CRUD for one ResourceSpec.

    Subclasses override single operations (create, update, ...) where a
    resource needs more than a row write.
    """

    def __init__(self, spec: ResourceSpec):
        self.spec = spec

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def serialize(self, row: dict[str, Any]) -> dict[str, Any]:
        """Shape a stored row for the response."""
        if not self.spec.hidden:
            return row
        return {k: v for k, v in row.items() if k not in self.spec.hidden}

    def clean_payload(self, body: Any) -> dict[str, Any]:
        """Keep writable fields only, coerced to column types."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        table = self.spec.table
        return {
            name: coerce_value(table.c[name], value)
            for name, value in body.items()
            if name in self.spec.writable
        }

    def check_required(self, data: dict[str, Any]) -> None:
        missing = [name for name in self.spec.required if data.get(name) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def fetch(
        self,
        storage: StorageProvider,
        ctx: AuthContext,
        id: str,
        write: bool = False,
    ) -> dict[str, Any]:
        """Row by id if the caller may see it (or change it); NotFound otherwise."""
        row = await storage.metadata.get(self.spec.collection, id)
        if row is None or not in_scope(row, scope_filter(self.spec, ctx, write=write)):
            raise NotFound(self.spec.label, id)
        return row

    async def query(
        self,
        storage: StorageProvider,
        ctx: AuthContext,
        params: Mapping[str, str],
    ) -> list[dict[str, Any]]:
        query = ResourceQuery(
            collection=self.spec.collection,
            filters=parse_filters(self.spec, params),
            match_any=scope_filter(self.spec, ctx) or {},
            sort=parse_sort(self.spec, params.get("sort")),
            limit=parse_int(params, "limit", DEFAULT_LIMIT, 1, MAX_LIMIT),
            offset=parse_int(params, "offset", 0, 0),
        )
        rows = await storage.metadata.query(query)
        return [self.serialize(row) for row in rows]

    async def get(self, storage: StorageProvider, ctx: AuthContext, id: str) -> dict[str, Any]:
        return self.serialize(await self.fetch(storage, ctx, id))

    async def create(self, storage: StorageProvider, ctx: AuthContext, body: Any) -> dict[str, Any]:
        data = {**self.spec.defaults, **self.clean_payload(body)}
        self.check_required(data)

        now = utc_now_iso()
        data[self.spec.owner_field] = ctx.user_id
        if self.spec.assign_to_owner and self.spec.assignee_field and not data.get(self.spec.assignee_field):
            data[self.spec.assignee_field] = ctx.user_id
        data.update(id=generate_id(), created_at=now, updated_at=now)

        row = await storage.metadata.insert(self.spec.collection, data)
        logger.info(f"{ctx.user_id} created {self.spec.name}/{row['id']}")
        return self.serialize(row)

    async def update(self, storage: StorageProvider, ctx: AuthContext, id: str, body: Any) -> dict[str, Any]:
        await self.fetch(storage, ctx, id, write=True)
        updates = self.clean_payload(body)
        if not updates:
            raise ValidationError("No fields to update")
        for name in self.spec.required:
            if name in updates and updates[name] in (None, ""):
                raise ValidationError(f"{name} cannot be empty")

        updates["updated_at"] = utc_now_iso()
        row = await storage.metadata.update(self.spec.collection, id, updates)
        if row is None:
            raise NotFound(self.spec.label, id)
        return self.serialize(row)

    async def delete(self, storage: StorageProvider, ctx: AuthContext, id: str) -> dict[str, Any]:
        await self.fetch(storage, ctx, id, write=True)
        if not await storage.metadata.delete(self.spec.collection, id):
            raise NotFound(self.spec.label, id)
        logger.info(f"{ctx.user_id} deleted {self.spec.name}/{id}")
        return {"success": True}

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    def add_create_route(self, router: APIRouter) -> None:
        @router.post("", status_code=status.HTTP_201_CREATED, name=f"create_{self.spec.name}")
        async def create_row(
            body: dict[str, Any] = Body(...),
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            return await self.create(storage, ctx, body)

    def build_router(self) -> APIRouter:
        router = APIRouter(prefix=f"/api/{self.spec.name}", tags=[self.spec.name])

        @router.get("", name=f"list_{self.spec.name}")
        async def list_rows(
            request: Request,
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            return await self.query(storage, ctx, request.query_params)

        self.add_create_route(router)

        @router.get("/{item_id}", name=f"get_{self.spec.name}")
        async def get_row(
            item_id: str,
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            return await self.get(storage, ctx, item_id)

        @router.put("/{item_id}", name=f"update_{self.spec.name}")
        async def update_row(
            item_id: str,
            body: dict[str, Any] = Body(...),
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            return await self.update(storage, ctx, item_id, body)

        @router.delete("/{item_id}", name=f"delete_{self.spec.name}")
        async def delete_row(
            item_id: str,
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            return await self.delete(storage, ctx, item_id)

        return router
