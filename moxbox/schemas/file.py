"""File schemas."""

import json
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any


class FileResponse(BaseModel):
    """Catalog row for one stored file."""
    id: str
    original_name: str
    stored_name: str
    mime_type: Optional[str] = None
    size: int
    hash_sha256: Optional[str] = None
    storage_provider: str = "local"
    storage_path: str
    owner_id: Optional[str] = None
    is_public: bool = False
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    status: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_json")
    created_at: datetime
    updated_at: datetime

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v):
        if v is None or isinstance(v, dict):
            return v
        try:
            parsed = json.loads(v)
        except (TypeError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None

    class Config:
        from_attributes = True


class FileListResponse(BaseModel):
    files: List[FileResponse]


class FileEnvelope(BaseModel):
    file: FileResponse


class UploadResponse(BaseModel):
    message: str
    file: FileResponse


class BatchItemResponse(BaseModel):
    original_name: str
    storage_path: str
    success: bool
    message: str
    file_id: Optional[str] = None
    error: Optional[str] = None

    class Config:
        from_attributes = True


class BatchUploadResponse(BaseModel):
    message: str
    total_count: int
    success_count: int
    failure_count: int
    results: List[BatchItemResponse]


class FileUpdate(BaseModel):
    """Editable metadata. Omitted fields are left unchanged."""
    original_name: Optional[str] = None
    is_public: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class FileMoveRequest(BaseModel):
    destination_folder: str = ""
    action: Optional[str] = None


class PermanentDeleteResponse(BaseModel):
    message: str
    id: str
