"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (local filesystem → S3, SQLite → PostgreSQL, etc.)
without changing application code.

- ContentStorage → object store for uploaded files
- MetadataStorage → relational store for rows
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from pydantic import BaseModel


# =============================================================================
# Queries
# =============================================================================


@dataclass(frozen=True)
class SortOrder:
    """An already-validated ORDER BY column."""

    column: str
    descending: bool = False


@dataclass
class ResourceQuery:
    """
    Everything needed to list rows of one collection.

    `filters` are AND-ed equality tests. `match_any` is an optional
    OR-group of equality tests (used for "created by me OR assigned to
    me" scoping); an empty group matches everything.
    """

    collection: str
    filters: dict[str, Any] = field(default_factory=dict)
    match_any: dict[str, Any] = field(default_factory=dict)
    sort: SortOrder | None = None
    limit: int = 100
    offset: int = 0


# =============================================================================
# Storage Interfaces
# =============================================================================


class ContentStorage(ABC):
    """
    Storage for binary content (documents, photos, avatars).

    Local Implementation: Filesystem
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store content, return its key."""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Retrieve content by key. Raises FileNotFoundError if absent."""
        pass

    @abstractmethod
    async def content_type(self, key: str) -> str:
        """Content type recorded at upload time."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete content."""
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        """List keys with optional prefix."""
        pass


class MetadataStorage(ABC):
    """
    Storage for structured rows (users, sessions, properties, ...).

    Implementation: SQL via SQLAlchemy (SQLite locally, PostgreSQL in production)
    """

    @abstractmethod
    async def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a row and return it as stored."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a row by ID."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        """First row matching all equality filters."""
        pass

    @abstractmethod
    async def query(self, query: ResourceQuery) -> list[dict[str, Any]]:
        """Rows matching the query, sorted and paginated."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Partial update. Returns the updated row, or None if absent."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a row by ID."""
        pass

    @abstractmethod
    async def delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        """Delete every row matching the filters; return how many went."""
        pass

    async def close(self) -> None:
        """Release connections."""
        return None


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    Services receive this and use the interfaces without knowing
    the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    content: ContentStorage
    metadata: MetadataStorage


# =============================================================================
# Collection Names (for MetadataStorage)
# =============================================================================


class Collections:
    """Standard collection/table names."""

    USERS = "users"
    SESSIONS = "sessions"
    PROPERTIES = "properties"
    CLIENTS = "clients"
    DEALS = "deals"
    NOTES = "notes"
    CALENDAR_EVENTS = "calendar_events"
    DOCUMENTS = "user_documents"
    CLIENT_INTERACTIONS = "client_interactions"
    REPORTS = "reports"
