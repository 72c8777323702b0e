"""Repository for file catalog rows."""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import and_, func
from sqlalchemy.sql.elements import ColumnElement

from .base import BaseRepository, escape_like
from ..exceptions import FileRecordNotFoundError
from ..models.file import StoredFile, FileStatus

# Columns callers may change through update().
_UPDATABLE_FIELDS = frozenset({
    "original_name", "stored_name", "mime_type", "size", "hash_sha256",
    "storage_path", "owner_id", "is_public", "status", "metadata_json",
})


def in_folder(folder: str) -> ColumnElement:
    """Filter for files stored directly in ``folder`` (not in subfolders)."""
    col = StoredFile.storage_path
    if not folder:
        return ~col.contains("/")
    prefix = escape_like(f"{folder}/")
    return and_(
        col.like(f"{prefix}%", escape="\\"),
        ~col.like(f"{prefix}%/%", escape="\\"),
    )


def name_scope(folder: str) -> ColumnElement:
    """Filter for files a name in ``folder`` competes with.

    Non-root folders match by prefix, so a namesake in any subfolder
    conflicts. The root only covers files outside every folder.
    """
    col = StoredFile.storage_path
    if not folder:
        return ~col.contains("/")
    return col.like(f"{escape_like(folder + '/')}%", escape="\\")


def under_folder(folder: str) -> ColumnElement:
    """Filter for files anywhere beneath ``folder``."""
    col = StoredFile.storage_path
    prefix = escape_like(f"{folder}/")
    return col.like(f"{prefix}%", escape="\\") | (col == folder)


class FileRepository(BaseRepository[StoredFile]):
    """Data access layer for the files table."""

    model_class = StoredFile
    not_found_error = FileRecordNotFoundError

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(
        self,
        original_name: str,
        stored_name: str,
        storage_path: str,
        size: int,
        mime_type: Optional[str] = None,
        hash_sha256: Optional[str] = None,
        owner_id: Optional[str] = None,
        is_public: bool = False,
        metadata_json: Optional[str] = None,
    ) -> StoredFile:
        record = StoredFile(
            original_name=original_name,
            stored_name=stored_name,
            storage_path=storage_path,
            size=size,
            mime_type=mime_type,
            hash_sha256=hash_sha256,
            owner_id=owner_id,
            is_public=is_public,
            metadata_json=metadata_json,
            status=FileStatus.ACTIVE.value,
        )
        self.db.add(record)
        self.commit()
        self.db.refresh(record)
        return record

    def list_files(
        self,
        owner_id: Optional[str] = None,
        is_public: Optional[bool] = None,
        status: str = FileStatus.ACTIVE.value,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[StoredFile]:
        """Files with the given status, newest first."""
        query = self.db.query(StoredFile).filter(StoredFile.status == status)
        if owner_id is not None:
            query = query.filter(StoredFile.owner_id == owner_id)
        if is_public is not None:
            query = query.filter(StoredFile.is_public == is_public)
        query = query.order_by(StoredFile.created_at.desc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def list_in_folder(self, folder: str) -> List[StoredFile]:
        """Every row (any status) stored directly in ``folder``."""
        return self.db.query(StoredFile).filter(in_folder(folder)).all()

    # ------------------------------------------------------------------
    # Name conflicts
    # ------------------------------------------------------------------

    def get_active_by_name_and_folder(
        self,
        original_name: str,
        folder: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[StoredFile]:
        query = self.db.query(StoredFile).filter(
            StoredFile.original_name == original_name,
            StoredFile.status == FileStatus.ACTIVE.value,
            name_scope(folder),
        )
        if exclude_id:
            query = query.filter(StoredFile.id != exclude_id)
        return query.first()

    def get_deleted_by_name_and_folder(
        self,
        original_name: str,
        folder: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[StoredFile]:
        """Trashed file holding ``original_name`` in ``folder``, regardless of owner."""
        query = self.db.query(StoredFile).filter(
            StoredFile.original_name == original_name,
            StoredFile.status == FileStatus.DELETED.value,
            name_scope(folder),
        )
        if exclude_id:
            query = query.filter(StoredFile.id != exclude_id)
        return query.first()

    def names_in_folder(self, folder: str) -> Set[str]:
        rows = self.db.query(StoredFile.original_name).filter(name_scope(folder)).all()
        return {row[0] for row in rows}

    def generate_unique_name_in_folder(self, desired_name: str, folder: str) -> str:
        """Return ``desired_name`` or ``"stem (n).ext"`` with the lowest free n.

        Names held by trashed files are skipped too, so a later soft-delete
        of the renamed copy cannot collide in the trash.
        """
        taken = self.names_in_folder(folder)
        if desired_name not in taken:
            return desired_name

        stem, ext = os.path.splitext(desired_name)
        counter = 1
        while True:
            candidate = f"{stem} ({counter}){ext}"
            if candidate not in taken:
                return candidate
            counter += 1

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update(self, file_id: str, commit: bool = True, **patch: Any) -> Optional[StoredFile]:
        """Apply ``patch`` and refresh ``updated_at``. Returns None if the row is absent."""
        record = self.get_by_id_optional(file_id)
        if record is None:
            return None

        unknown = set(patch) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update file fields: {sorted(unknown)}")

        for key, value in patch.items():
            setattr(record, key, value)
        record.updated_at = datetime.now(timezone.utc)

        if commit:
            self.commit()
            self.db.refresh(record)
        return record

    def mark_deleted(self, file_id: str) -> Optional[StoredFile]:
        return self.update(file_id, status=FileStatus.DELETED.value)

    def restore(self, file_id: str) -> Optional[StoredFile]:
        return self.update(file_id, status=FileStatus.ACTIVE.value)

    def supersede(self, mover_id: str, target_id: str, **patch: Any) -> StoredFile:
        """Drop the mover's row and rewrite the target row, in one commit.

        The mover's row is flushed away first so the target can take over
        its unique ``stored_name``.
        """
        mover = self.get_by_id(mover_id)
        self.db.delete(mover)
        self.flush()

        target = self.update(target_id, commit=False, **patch)
        if target is None:
            self.db.rollback()
            raise FileRecordNotFoundError(target_id)
        self.commit()
        self.db.refresh(target)
        return target

    def repath_prefix(self, old_folder: str, new_folder: str, commit: bool = True) -> int:
        """Rewrite storage paths beneath ``old_folder`` to sit beneath ``new_folder``."""
        rows = self.db.query(StoredFile).filter(under_folder(old_folder)).all()
        now = datetime.now(timezone.utc)
        for row in rows:
            row.storage_path = new_folder + row.storage_path[len(old_folder):]
            row.updated_at = now
        if commit:
            self.commit()
        return len(rows)

    def bump_access(self, file_id: str) -> None:
        self.db.query(StoredFile).filter(StoredFile.id == file_id).update(
            {
                StoredFile.access_count: StoredFile.access_count + 1,
                StoredFile.last_accessed: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
        self.commit()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_permanent(self, file_id: str) -> Optional[Dict[str, str]]:
        """Remove the row and return ``{"storage_path": ...}``, or None if absent."""
        record = self.get_by_id_optional(file_id)
        if record is None:
            return None
        storage_path = record.storage_path
        self.db.delete(record)
        self.commit()
        return {"storage_path": storage_path}

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def sum_sizes_under(self, folder: str) -> int:
        """Bytes of active and deleted files beneath ``folder`` (all files for root)."""
        query = self.db.query(func.coalesce(func.sum(StoredFile.size), 0)).filter(
            StoredFile.status.in_([FileStatus.ACTIVE.value, FileStatus.DELETED.value])
        )
        if folder:
            query = query.filter(under_folder(folder))
        return int(query.scalar() or 0)
