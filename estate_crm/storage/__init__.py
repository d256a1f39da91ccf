"""
Storage abstractions.

- ContentStorage → uploaded files (local filesystem)
- MetadataStorage → relational rows (SQLAlchemy)
"""

from estate_crm.storage.base import (
    Collections,
    ContentStorage,
    MetadataStorage,
    ResourceQuery,
    SortOrder,
    StorageProvider,
)
from estate_crm.storage.local import LocalContentStorage, create_local_storage
from estate_crm.storage.sql import SqlMetadataStorage, create_database_engine

__all__ = [
    "Collections",
    "ContentStorage",
    "MetadataStorage",
    "ResourceQuery",
    "SortOrder",
    "StorageProvider",
    "LocalContentStorage",
    "SqlMetadataStorage",
    "create_database_engine",
    "create_local_storage",
]
