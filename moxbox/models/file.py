"""File catalog model: one row per stored blob."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, String, Text, Integer, BigInteger, Boolean, DateTime, Index
from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileStatus(str, Enum):
    """Soft-delete state of a file row."""
    ACTIVE = "active"
    DELETED = "deleted"


class StoredFile(Base):
    """Metadata for one blob under the storage root.

    ``storage_path`` is relative to the root; its directory portion is the
    owning folder and its leaf is ``stored_name``. Folder membership is
    derived from that string, there is no folder foreign key.
    """

    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Display name; unique per (folder, status)
    original_name = Column(Text, nullable=False)
    # Server-generated leaf name on disk
    stored_name = Column(String(255), nullable=False, unique=True)

    mime_type = Column(String(255), nullable=True)
    size = Column(BigInteger, nullable=False, default=0)
    hash_sha256 = Column(String(64), nullable=True)

    storage_provider = Column(String(20), nullable=False, default="local")
    storage_path = Column(Text, nullable=False)

    owner_id = Column(String(36), nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)

    access_count = Column(Integer, nullable=False, default=0)
    last_accessed = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=FileStatus.ACTIVE.value)
    metadata_json = Column(Text, nullable=True)

    # Python-side defaults keep sub-second ordering for newest-first listings
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_files_owner_id", "owner_id"),
        Index("idx_files_created_at", "created_at"),
        Index("idx_files_hash_sha256", "hash_sha256"),
        Index("idx_files_storage_path", "storage_path"),
    )

    @property
    def folder(self) -> str:
        head, _, _ = self.storage_path.rpartition("/")
        return head

    @property
    def is_deleted(self) -> bool:
        return self.status == FileStatus.DELETED.value
