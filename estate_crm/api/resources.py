"""
Resource declarations.

Each REST resource is described once here; the gateway builds its
routes, validation, scoping and sorting from the declaration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Table

from estate_crm.auth.capabilities import Capability
from estate_crm.storage.base import Collections, SortOrder
from estate_crm.storage.schema import metadata

# Fields the server always assigns itself
SERVER_FIELDS = frozenset({"id", "created_at", "updated_at"})

NEWEST_FIRST = SortOrder("created_at", descending=True)
TIMESTAMPS = ("created_at", "updated_at")


class Scope(str, Enum):
    """Who sees (and may change) a resource's rows."""

    SHARED = "shared"      # every approved user
    OWNED = "owned"        # creator/assignee, unless caller holds the "all" capability
    PERSONAL = "personal"  # owner only; view_all_data may read


@dataclass(frozen=True)
class ResourceSpec:
    """Declaration of one REST resource."""

    name: str                 # URL segment: /api/{name}
    collection: str
    label: str                # human name for messages
    scope: Scope = Scope.SHARED
    owner_field: str = "created_by"
    assignee_field: str | None = None
    all_capability: Capability | None = None
    required: tuple[str, ...] = ()
    defaults: dict[str, Any] = field(default_factory=dict)
    sortable: tuple[str, ...] = TIMESTAMPS
    default_sort: SortOrder = NEWEST_FIRST
    readonly: tuple[str, ...] = ()
    hidden: tuple[str, ...] = ()
    assign_to_owner: bool = False

    @property
    def table(self) -> Table:
        return metadata.tables[self.collection]

    @property
    def columns(self) -> frozenset[str]:
        return frozenset(self.table.c.keys())

    @property
    def writable(self) -> frozenset[str]:
        """Columns a client may set on create or update."""
        blocked = SERVER_FIELDS | {self.owner_field} | set(self.readonly) | set(self.hidden)
        return self.columns - blocked

    @property
    def filterable(self) -> frozenset[str]:
        """Columns usable as ?column=value equality filters."""
        return frozenset(
            c.name for c in self.table.c
            if not isinstance(c.type, JSON) and c.name not in self.hidden
        )


# =============================================================================
# Declarations
# =============================================================================


PROPERTIES = ResourceSpec(
    name="properties",
    collection=Collections.PROPERTIES,
    label="Property",
    scope=Scope.OWNED,
    owner_field="created_by",
    assignee_field="manager_id",
    all_capability=Capability.MANAGE_ALL_PROPERTIES,
    required=("title",),
    defaults={
        "status": "active",
        "currency": "UAH",
        "negotiable": False,
        "owner_phones": [],
        "photos": [],
        "documents": [],
        "tags": [],
    },
    sortable=(*TIMESTAMPS, "title", "price", "status", "rooms", "area_total"),
    assign_to_owner=True,
)

CLIENTS = ResourceSpec(
    name="clients",
    collection=Collections.CLIENTS,
    label="Client",
    required=("full_name",),
    defaults={"segment": "buyer", "tags": []},
    sortable=(*TIMESTAMPS, "full_name", "email", "budget", "segment"),
)

DEALS = ResourceSpec(
    name="deals",
    collection=Collections.DEALS,
    label="Deal",
    assignee_field="assigned_agent_id",
    required=("title",),
    defaults={"stage": "lead"},
    sortable=(*TIMESTAMPS, "title", "stage", "amount"),
)

NOTES = ResourceSpec(
    name="notes",
    collection=Collections.NOTES,
    label="Note",
    scope=Scope.PERSONAL,
    required=("title",),
    defaults={"priority": "medium", "done": False},
    sortable=(*TIMESTAMPS, "title", "priority"),
)

CALENDAR_EVENTS = ResourceSpec(
    name="calendar-events",
    collection=Collections.CALENDAR_EVENTS,
    label="Calendar event",
    scope=Scope.PERSONAL,
    owner_field="user_id",
    required=("title", "starts_at"),
    defaults={"event_type": "meeting", "status": "planned"},
    sortable=(*TIMESTAMPS, "title", "status", "starts_at"),
    default_sort=SortOrder("starts_at"),
)

DOCUMENTS = ResourceSpec(
    name="documents",
    collection=Collections.DOCUMENTS,
    label="Document",
    scope=Scope.PERSONAL,
    owner_field="user_id",
    required=("title",),
    defaults={"category": "fop"},
    sortable=(*TIMESTAMPS, "title", "category"),
    readonly=("file_url", "file_name", "file_size", "mime_type"),
)

CLIENT_INTERACTIONS = ResourceSpec(
    name="client-interactions",
    collection=Collections.CLIENT_INTERACTIONS,
    label="Client interaction",
    owner_field="user_id",
    required=("client_id",),
)

REPORTS = ResourceSpec(
    name="reports",
    collection=Collections.REPORTS,
    label="Report",
    scope=Scope.OWNED,
    owner_field="user_id",
    all_capability=Capability.MANAGE_ALL_REPORTS,
    required=("title", "period_start", "period_end"),
    defaults={"status": "draft"},
    sortable=(*TIMESTAMPS, "title", "status", "period_start"),
    readonly=("signature", "signed_at", "sent_at"),
)

USERS = ResourceSpec(
    name="users",
    collection=Collections.USERS,
    label="User",
    owner_field="id",
    sortable=(*TIMESTAMPS, "full_name", "email", "role"),
    hidden=("password_hash", "secret_key"),
)


RESOURCES: dict[str, ResourceSpec] = {
    spec.name: spec
    for spec in (
        PROPERTIES,
        CLIENTS,
        DEALS,
        NOTES,
        CALENDAR_EVENTS,
        DOCUMENTS,
        CLIENT_INTERACTIONS,
        REPORTS,
        USERS,
    )
}
