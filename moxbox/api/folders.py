"""Folder API: create, rename, delete, list.

Single router for all folder operations. Delegates to FolderService.
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..core.auth import AuthContext, require_auth
from ..database import get_db
from ..schemas.folder import (
    FolderContentsResponse,
    FolderCreate,
    FolderRenameRequest,
    FolderResponse,
    RootFolderInfo,
)
from ..services.folder_service import FolderService
from ..storage.blob_store import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.get("/root", response_model=RootFolderInfo)
def get_root_folder_info(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Bytes used under the storage root."""
    return FolderService(db, blob_store).get_root_info()


@router.get("", response_model=List[FolderResponse])
def list_folders(
    owner_id: Optional[str] = Query(None),
    path_prefix: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Tracked folders with their cached sizes."""
    folders = FolderService(db, blob_store).list_folders(
        owner_id=owner_id, path_prefix=path_prefix, limit=limit, offset=offset
    )
    return [FolderResponse.model_validate(f) for f in folders]


@router.get("/list", response_model=FolderContentsResponse)
def list_folder_contents(
    path: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Files and subfolders of one directory (root when ``path`` is omitted)."""
    return FolderService(db, blob_store).list_contents(path)


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    folder = FolderService(db, blob_store).create_folder(data.path, owner_id=auth.user_id)
    return FolderResponse.model_validate(folder)


@router.patch("/rename", response_model=FolderResponse)
def rename_folder(
    data: FolderRenameRequest,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Rename or move a folder together with its contents."""
    folder = FolderService(db, blob_store).rename_folder(
        data.old_path, data.new_path, owner_id=auth.user_id
    )
    return FolderResponse.model_validate(folder)


@router.delete("", status_code=204)
def delete_folder(
    path: str = Query(...),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    auth: AuthContext = Depends(require_auth),
):
    """Delete an empty folder."""
    FolderService(db, blob_store).delete_folder(path)
