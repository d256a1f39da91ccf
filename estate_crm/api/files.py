"""
File upload, download proxy and the documents resource.

Objects are stored under generated keys:

    {folder}/{user_id}/{id}_{filename}

Keys below `documents/` belong to the user in the second segment and are
readable only by them (or by view_all_data holders). Everything else is
readable by any approved user.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status

from estate_crm.api.gateway import ResourceGateway
from estate_crm.api.resources import DOCUMENTS
from estate_crm.auth.capabilities import Capability
from estate_crm.auth.context import AuthContext
from estate_crm.auth.policies import get_storage, require_approved
from estate_crm.core.errors import CRMError, NotFound, ValidationError
from estate_crm.core.utils import generate_id, utc_now_iso
from estate_crm.storage.base import StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "uploads"
DOCUMENTS_FOLDER = "documents"
FILES_URL_PREFIX = "/api/files/"

FOLDER_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")
UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


# =============================================================================
# Keys
# =============================================================================


def safe_filename(filename: str | None) -> str:
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    return name[:200] or "file"


def build_key(folder: str, user_id: str, filename: str | None) -> str:
    if not FOLDER_PATTERN.match(folder):
        raise ValidationError("Invalid folder name")
    return f"{folder}/{user_id}/{generate_id()}_{safe_filename(filename)}"


def key_owner(key: str) -> str | None:
    """User id encoded in a key, if any."""
    parts = key.split("/")
    return parts[1] if len(parts) >= 3 else None


def can_read_key(ctx: AuthContext, key: str) -> bool:
    if any(part in ("", ".", "..") for part in key.split("/")):
        return False
    if not key.startswith(f"{DOCUMENTS_FOLDER}/"):
        return True
    return key_owner(key) == ctx.user_id or ctx.can(Capability.VIEW_ALL_DATA)


def file_url(key: str) -> str:
    return f"{FILES_URL_PREFIX}{key}"


def key_from_url(url: str) -> str:
    return url[len(FILES_URL_PREFIX):] if url.startswith(FILES_URL_PREFIX) else url


async def store_upload(storage: StorageProvider, upload: UploadFile, key: str) -> dict[str, Any]:
    data = await upload.read()
    content_type = upload.content_type or "application/octet-stream"
    await storage.content.put(key, data, content_type)
    return {
        "key": key,
        "name": upload.filename or safe_filename(None),
        "size": len(data),
        "type": content_type,
    }


# =============================================================================
# Files API
# =============================================================================


router = APIRouter(prefix="/api/files", tags=["files"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    folder: str = Form(DEFAULT_FOLDER),
    ctx: AuthContext = Depends(require_approved()),
    storage: StorageProvider = Depends(get_storage),
):
    """Store an uploaded file and return its key."""
    key = build_key(folder or DEFAULT_FOLDER, ctx.user_id, file.filename)
    stored = await store_upload(storage, file, key)
    logger.info(f"User {ctx.user_id} uploaded {key} ({stored['size']} bytes)")
    return stored


@router.get("/{key:path}")
async def download_file(
    key: str,
    ctx: AuthContext = Depends(require_approved()),
    storage: StorageProvider = Depends(get_storage),
):
    """Proxy stored bytes back to the client."""
    if not can_read_key(ctx, key):
        raise NotFound("File", key)
    try:
        data = await storage.content.get(key)
        media_type = await storage.content.content_type(key)
    except FileNotFoundError:
        raise NotFound("File", key) from None
    return Response(content=data, media_type=media_type)


# =============================================================================
# Documents
# =============================================================================


class DocumentsGateway(ResourceGateway):
    """
    Personal documents: a metadata row plus the stored file.

    Create uploads first and inserts second; if the insert fails the
    object is removed again. Delete removes the row first, then the object.
    """

    async def create_with_file(
        self,
        storage: StorageProvider,
        ctx: AuthContext,
        upload: UploadFile,
        title: str,
        category: str | None,
    ) -> dict[str, Any]:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Missing required fields: title")

        key = build_key(DOCUMENTS_FOLDER, ctx.user_id, upload.filename)
        stored = await store_upload(storage, upload, key)

        now = utc_now_iso()
        row = {
            "id": generate_id(),
            "user_id": ctx.user_id,
            "title": title,
            "category": category or self.spec.defaults.get("category"),
            "file_url": file_url(key),
            "file_name": stored["name"],
            "file_size": stored["size"],
            "mime_type": stored["type"],
            "created_at": now,
            "updated_at": now,
        }
        try:
            created = await storage.metadata.insert(self.spec.collection, row)
        except CRMError:
            logger.error(f"Document row insert failed; removing uploaded object {key}")
            await storage.content.delete(key)
            raise

        logger.info(f"User {ctx.user_id} uploaded document {created['id']}")
        return self.serialize(created)

    async def delete(self, storage: StorageProvider, ctx: AuthContext, id: str) -> dict[str, Any]:
        row = await self.fetch(storage, ctx, id, write=True)
        if not await storage.metadata.delete(self.spec.collection, id):
            raise NotFound(self.spec.label, id)

        key = key_from_url(row["file_url"])
        try:
            await storage.content.delete(key)
        except OSError:
            logger.exception(f"Document {id} deleted but its object {key} could not be removed")
        return {"success": True}

    def add_create_route(self, router: APIRouter) -> None:
        @router.post("", status_code=status.HTTP_201_CREATED, name="create_documents")
        async def create_document(
            file: UploadFile = File(...),
            title: str = Form(...),
            category: str | None = Form(None),
            ctx: AuthContext = Depends(require_approved()),
            storage: StorageProvider = Depends(get_storage),
        ):
            """Upload a document file together with its metadata."""
            return await self.create_with_file(storage, ctx, file, title, category)


documents = DocumentsGateway(DOCUMENTS)
