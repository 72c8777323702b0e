"""Folder schemas."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List


class FolderCreate(BaseModel):
    """Request to create a folder."""
    path: str


class FolderRenameRequest(BaseModel):
    """Request to rename (move) a folder."""
    old_path: str
    new_path: str


class FolderResponse(BaseModel):
    """Tracked folder with its cached size."""
    id: str
    path: str
    owner_id: Optional[str] = None
    size: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RootFolderInfo(BaseModel):
    path: str = ""
    size: int


class DirectoryEntry(BaseModel):
    """One entry of a directory listing.

    File entries carry catalog metadata when a row exists for the blob;
    folder entries carry the cached size when the folder is tracked.
    """
    name: str
    type: str
    path: str
    size: Optional[int] = None
    file_id: Optional[str] = None
    original_name: Optional[str] = None
    mime_type: Optional[str] = None
    status: Optional[str] = None


class FolderContentsResponse(BaseModel):
    path: str
    entries: List[DirectoryEntry]
