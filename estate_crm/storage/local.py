"""
Local storage implementations for development.

Filesystem-backed object storage plus the factory that wires it to
the SQL metadata store.
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import AsyncIterator

from estate_crm.storage.base import ContentStorage, StorageProvider
from estate_crm.storage.sql import SqlMetadataStorage


# =============================================================================
# Local Filesystem Content Storage
# =============================================================================


class LocalContentStorage(ContentStorage):
    """Store content on local filesystem."""

    META_SUFFIX = ".meta.json"

    def __init__(self, base_path: str = "./data/content"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        # Keys come from URLs; never let one escape the content root
        if path == self.base_path or self.base_path not in path.parents:
            raise FileNotFoundError(f"Content not found: {key}")
        return path

    def _meta_path(self, path: Path) -> Path:
        return path.with_name(path.name + self.META_SUFFIX)

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._key_to_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self._meta_path(path).write_text(json.dumps({"content_type": content_type}))
        return key

    async def get(self, key: str) -> bytes:
        path = self._key_to_path(key)
        if not path.is_file() or path.name.endswith(self.META_SUFFIX):
            raise FileNotFoundError(f"Content not found: {key}")
        return path.read_bytes()

    async def content_type(self, key: str) -> str:
        path = self._key_to_path(key)
        meta = self._meta_path(path)
        if meta.exists():
            return json.loads(meta.read_text()).get("content_type") or "application/octet-stream"
        guessed, _ = mimetypes.guess_type(path.name)
        return guessed or "application/octet-stream"

    async def delete(self, key: str) -> bool:
        try:
            path = self._key_to_path(key)
        except FileNotFoundError:
            return False
        if path.is_file():
            path.unlink()
            self._meta_path(path).unlink(missing_ok=True)
            return True
        return False

    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        search_path = self.base_path / prefix if prefix else self.base_path
        if search_path.exists():
            for path in search_path.rglob("*"):
                if path.is_file() and not path.name.endswith(self.META_SUFFIX):
                    yield str(path.relative_to(self.base_path).as_posix())


# =============================================================================
# Factory
# =============================================================================


def create_local_storage(database_url: str, content_dir: str = "./data/content") -> StorageProvider:
    """Create a StorageProvider: SQL rows + filesystem objects, tables created."""
    metadata = SqlMetadataStorage.from_url(database_url)
    metadata.create_all()
    return StorageProvider(
        content=LocalContentStorage(content_dir),
        metadata=metadata,
    )
