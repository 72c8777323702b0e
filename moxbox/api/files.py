"""File API: upload, download, list, metadata, move, trash lifecycle.

Thin wrappers around FileService. Uploads are written to the storage root
by an UploadSession before the service catalogs them; the session's
``abort_cleanup`` runs on every exit path and is a no-op once the upload
has been committed.
"""

import logging
import posixpath
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.config import settings
from ..database import get_db
from ..exceptions import ValidationError
from ..schemas.file import (
    BatchItemResponse,
    BatchUploadResponse,
    FileEnvelope,
    FileListResponse,
    FileMoveRequest,
    FileResponse,
    FileUpdate,
    PermanentDeleteResponse,
    UploadResponse,
)
from ..services.file_service import BatchItem, FileService
from ..services.upload_session import UploadSession
from ..storage.blob_store import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def _new_session(blob_store: BlobStore) -> UploadSession:
    return UploadSession(
        blob_store,
        max_file_size=settings.upload_max_file_size,
        disallowed_mime_types=settings.get_disallowed_mime_types(),
    )


# -- Upload ---------------------------------------------------------------

@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload_file(
    file: UploadFile = File(...),
    folder: Optional[str] = Form(None),
    action: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Upload one file into ``folder`` (root when omitted).

    409 with ``details.type`` of ``active`` or ``trashed`` on a name
    conflict; retry with ``action=replace|keep_both`` for the former.
    """
    session = _new_session(blob_store)
    try:
        received = session.receive(file.file, file.filename, folder, file.content_type)
        result = FileService(db, blob_store).upload(
            received.storage_path,
            received.original_name,
            received.folder,
            owner_id=auth.user_id,
            mime_type=received.mime_type,
            action=action,
        )
        session.complete()
    finally:
        session.abort_cleanup()

    return UploadResponse(message=result.message, file=FileResponse.model_validate(result.file))


@router.post("/upload/batch", response_model=BatchUploadResponse, status_code=201)
def upload_files(
    files: List[UploadFile] = File(..., alias="file"),
    relative_paths: Optional[List[str]] = Form(None, alias="relative_path"),
    folder: Optional[str] = Form(None),
    action: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Upload several files, optionally preserving a browser folder structure.

    ``relative_path[i]`` (e.g. ``photos/2024/a.jpg``) places file *i* in
    ``folder/photos/2024``.
    """
    if relative_paths and len(relative_paths) != len(files):
        raise ValidationError("relative_path must have one entry per file", field="relative_path")

    session = _new_session(blob_store)
    try:
        items = []
        for index, upload in enumerate(files):
            target = folder or ""
            if relative_paths:
                subdir = posixpath.dirname(relative_paths[index].replace("\\", "/"))
                target = posixpath.join(target, subdir) if subdir else target
            received = session.receive(upload.file, upload.filename, target, upload.content_type)
            items.append(BatchItem(
                storage_path=received.storage_path,
                original_name=received.original_name,
                folder=received.folder,
                mime_type=received.mime_type,
            ))

        result = FileService(db, blob_store).upload_batch(items, owner_id=auth.user_id, action=action)
        session.complete()
    finally:
        session.abort_cleanup()

    message = "Upload complete" if result.failure_count == 0 else "Upload finished with errors"
    return BatchUploadResponse(
        message=message,
        total_count=result.total_count,
        success_count=result.success_count,
        failure_count=result.failure_count,
        results=[BatchItemResponse.model_validate(r) for r in result.results],
    )


# -- Read -----------------------------------------------------------------

@router.get("", response_model=FileListResponse)
def list_files(
    owner_id: Optional[str] = Query(None),
    is_public: Optional[bool] = Query(None),
    status: str = Query("active"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """List files, newest first. ``owner_id`` defaults to the caller."""
    files = FileService(db, blob_store).list_files(
        owner_id=owner_id or auth.user_id,
        is_public=is_public,
        status=status,
        limit=limit,
        offset=offset,
    )
    return FileListResponse(files=[FileResponse.model_validate(f) for f in files])


@router.get("/id/{file_id}")
def download_file(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Stream a file's content."""
    record, chunks = FileService(db, blob_store).open_download(
        file_id, chunk_size=settings.download_chunk_size
    )
    headers = {
        "Content-Length": str(record.size),
        "Content-Disposition": f"inline; filename*=UTF-8''{quote(record.original_name)}",
    }
    return StreamingResponse(
        chunks,
        media_type=record.mime_type or "application/octet-stream",
        headers=headers,
    )


# -- Mutations --------------------------------------------------------------

@router.patch("/id/{file_id}", response_model=FileEnvelope)
def update_file_metadata(
    file_id: str,
    data: FileUpdate,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    updated = FileService(db, blob_store).update_metadata(
        file_id,
        original_name=data.original_name,
        is_public=data.is_public,
        metadata=data.metadata,
    )
    return FileEnvelope(file=FileResponse.model_validate(updated))


@router.post("/id/{file_id}/move", response_model=FileEnvelope)
def move_file(
    file_id: str,
    data: FileMoveRequest,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Move a file to another folder; 409 on a name conflict without ``action``."""
    moved = FileService(db, blob_store).move(
        file_id, data.destination_folder, requester_id=auth.user_id, action=data.action
    )
    return FileEnvelope(file=FileResponse.model_validate(moved))


@router.post("/id/{file_id}/soft-delete", response_model=FileEnvelope)
def soft_delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    updated = FileService(db, blob_store).soft_delete(file_id)
    return FileEnvelope(file=FileResponse.model_validate(updated))


@router.post("/id/{file_id}/restore", response_model=FileEnvelope)
def restore_file(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    updated = FileService(db, blob_store).restore(file_id)
    return FileEnvelope(file=FileResponse.model_validate(updated))


@router.delete("/id/{file_id}/permanent", response_model=PermanentDeleteResponse)
def permanent_delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    result = FileService(db, blob_store).permanent_delete(file_id)
    return PermanentDeleteResponse(message="File permanently deleted", id=result["id"])
