"""
Relational schema.

One SQLAlchemy Core table per collection. Timestamps are ISO-8601 UTC
strings so ordering by them is lexical and database-independent.
List-valued fields use the JSON type.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()


def _id() -> Column:
    return Column("id", String(64), primary_key=True)


def _timestamps() -> list[Column]:
    return [
        Column("created_at", String(40), nullable=False, index=True),
        Column("updated_at", String(40), nullable=False),
    ]


users = Table(
    "users",
    metadata,
    _id(),
    Column("email", String(320), nullable=False, unique=True),
    Column("password_hash", String(200), nullable=False),
    Column("full_name", String(200), nullable=False),
    Column("role", String(32), nullable=False, default="manager"),
    Column("phone", String(64)),
    Column("avatar_url", Text),
    Column("approved", Boolean, nullable=False, default=False),
    Column("approved_at", String(40)),
    Column("approved_by", String(64)),
    Column("secret_key", String(128)),
    *_timestamps(),
)

sessions = Table(
    "sessions",
    metadata,
    _id(),
    Column("user_id", String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("refresh_token", String(128), nullable=False, unique=True),
    Column("expires_at", String(40), nullable=False),
    Column("created_at", String(40), nullable=False),
)

properties = Table(
    "properties",
    metadata,
    _id(),
    Column("title", String(300), nullable=False),
    Column("description", Text),
    Column("address", Text),
    Column("city", String(120)),
    Column("district", String(120)),
    Column("street", String(200)),
    Column("building_number", String(32)),
    Column("block", String(32)),
    Column("floor", Integer),
    Column("apartment", String(32)),
    Column("latitude", Float),
    Column("longitude", Float),
    Column("operation_type", String(32)),
    Column("category", String(64)),
    Column("source", String(64)),
    Column("status", String(32), nullable=False, default="active"),
    Column("rooms", Integer),
    Column("area_total", Float),
    Column("area_living", Float),
    Column("area_kitchen", Float),
    Column("floors_total", Integer),
    Column("property_condition", String(64)),
    Column("heating", String(64)),
    Column("bathroom", String(64)),
    Column("balcony_type", String(64)),
    Column("price", Float),
    Column("currency", String(8)),
    Column("price_per_sqm", Float),
    Column("negotiable", Boolean, default=False),
    Column("additional_costs", Text),
    Column("owner_name", String(200)),
    Column("owner_phones", JSON),
    Column("owner_email", String(320)),
    Column("owner_notes", Text),
    Column("photos", JSON),
    Column("documents", JSON),
    Column("tags", JSON),
    Column("agent_notes", Text),
    Column("linked_client_id", String(64)),
    Column("linked_deal_id", String(64)),
    Column("created_by", String(64), nullable=False, index=True),
    Column("manager_id", String(64), index=True),
    *_timestamps(),
)

clients = Table(
    "clients",
    metadata,
    _id(),
    Column("full_name", String(200), nullable=False),
    Column("phone", String(64)),
    Column("email", String(320)),
    Column("segment", String(32)),
    Column("age", Integer),
    Column("budget", Float),
    Column("tags", JSON),
    Column("notes", Text),
    Column("created_by", String(64), nullable=False, index=True),
    *_timestamps(),
)

deals = Table(
    "deals",
    metadata,
    _id(),
    Column("title", String(300), nullable=False),
    Column("stage", String(32)),
    Column("property_id", String(64)),
    Column("client_id", String(64)),
    Column("assigned_agent_id", String(64), index=True),
    Column("created_by", String(64), nullable=False, index=True),
    Column("notes", Text),
    Column("amount", Float),
    *_timestamps(),
)

notes = Table(
    "notes",
    metadata,
    _id(),
    Column("title", String(300), nullable=False),
    Column("content", Text),
    Column("priority", String(16)),
    Column("done", Boolean, default=False),
    Column("created_by", String(64), nullable=False, index=True),
    *_timestamps(),
)

calendar_events = Table(
    "calendar_events",
    metadata,
    _id(),
    Column("title", String(300), nullable=False),
    Column("description", Text),
    Column("starts_at", String(40), nullable=False),
    Column("ends_at", String(40)),
    Column("event_type", String(32)),
    Column("status", String(32)),
    Column("user_id", String(64), nullable=False, index=True),
    Column("property_id", String(64)),
    Column("client_id", String(64)),
    *_timestamps(),
)

user_documents = Table(
    "user_documents",
    metadata,
    _id(),
    Column("user_id", String(64), nullable=False, index=True),
    Column("title", String(300), nullable=False),
    Column("category", String(64)),
    Column("file_url", Text, nullable=False),
    Column("file_name", String(300), nullable=False),
    Column("file_size", Integer),
    Column("mime_type", String(200)),
    *_timestamps(),
)

client_interactions = Table(
    "client_interactions",
    metadata,
    _id(),
    Column("client_id", String(64), nullable=False, index=True),
    Column("user_id", String(64), nullable=False),
    Column("interaction_type", String(64)),
    Column("notes", Text),
    *_timestamps(),
)

reports = Table(
    "reports",
    metadata,
    _id(),
    Column("user_id", String(64), nullable=False, index=True),
    Column("title", String(300), nullable=False),
    Column("period_start", String(40), nullable=False),
    Column("period_end", String(40), nullable=False),
    Column("content", JSON),
    Column("status", String(32)),
    Column("signature", String(64)),
    Column("signed_at", String(40)),
    Column("sent_at", String(40)),
    *_timestamps(),
)
