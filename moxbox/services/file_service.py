"""Deep module for the file lifecycle: upload, move, trash, restore, purge.

Every operation that touches both the storage root and the catalog does the
physical step first and the catalog step second. When the catalog step
fails, the physical step is undone (or the new blob discarded) and the
original error is re-raised. Orphaned blobs are the only residue a failure
can leave; a catalog row never points at a blob that is gone.

Public methods:
    list_files       -- filtered, newest first
    get_file         -- lookup by id
    open_download    -- record + chunk iterator, bumps access count
    upload           -- single file whose blob is already written
    upload_batch     -- many files, conflict pre-check, per-file results
    move             -- relocate to another tracked folder
    update_metadata  -- display name, visibility, free-form metadata
    soft_delete / restore / permanent_delete
"""

import json
import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.path_sanitizer import sanitize_folder_path, join_storage_path, parent_folder
from ..exceptions import (
    BatchConflictError,
    BlobNotFoundError,
    FileRecordNotFoundError,
    FolderNotFoundError,
    MoxboxException,
    ValidationError,
)
from ..models.file import StoredFile, FileStatus
from ..repositories.file_repository import FileRepository
from ..repositories.folder_repository import FolderRepository
from ..storage.blob_store import BlobStore, HASH_CHUNK_SIZE
from .conflict_resolver import ConflictAction, ConflictResolver, parse_action
from .folder_size_service import FolderSizeService

logger = logging.getLogger(__name__)

_OUTCOME_MESSAGES = {
    "created": "Uploaded",
    "replaced": "Replaced",
    "renamed": "Renamed",
}


@dataclass
class UploadResult:
    file: StoredFile
    outcome: str

    @property
    def message(self) -> str:
        return _OUTCOME_MESSAGES[self.outcome]


@dataclass
class BatchItem:
    """One already-written blob in a batch upload."""
    storage_path: str
    original_name: str
    folder: str
    mime_type: Optional[str] = None


@dataclass
class BatchItemResult:
    original_name: str
    storage_path: str
    success: bool
    message: str
    file_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchUploadResult:
    results: List[BatchItemResult] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return self.total_count - self.success_count


def _validate_display_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("File name is required", field="original_name")
    if "/" in cleaned or "\\" in cleaned:
        raise ValidationError("File name cannot contain slashes", field="original_name")
    if len(cleaned) > 255:
        raise ValidationError("File name exceeds 255 characters", field="original_name")
    return cleaned


class FileService:
    """File lifecycle orchestration over a catalog session and a blob store."""

    def __init__(self, db: Session, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.sizes = FolderSizeService(db)
        self.resolver = ConflictResolver(self.file_repo)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_files(
        self,
        owner_id: Optional[str] = None,
        is_public: Optional[bool] = None,
        status: str = FileStatus.ACTIVE.value,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[StoredFile]:
        if status not in (FileStatus.ACTIVE.value, FileStatus.DELETED.value):
            raise ValidationError(f"Invalid status '{status}'", field="status")
        return self.file_repo.list_files(
            owner_id=owner_id, is_public=is_public, status=status, limit=limit, offset=offset
        )

    def get_file(self, file_id: str) -> StoredFile:
        return self.file_repo.get_by_id(file_id)

    def open_download(
        self, file_id: str, chunk_size: int = HASH_CHUNK_SIZE
    ) -> Tuple[StoredFile, Iterator[bytes]]:
        """Open a file for streaming. The access counter bump never fails the read."""
        record = self.file_repo.get_by_id(file_id)
        chunks = self.blob_store.read_stream(record.storage_path, chunk_size)
        try:
            self.file_repo.bump_access(record.id)
        except MoxboxException as e:
            logger.warning("Access count bump failed", extra={"file_id": record.id, "error": e.message})
        return record, chunks

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        storage_path: str,
        original_name: str,
        folder: Optional[str],
        owner_id: Optional[str] = None,
        mime_type: Optional[str] = None,
        action: Optional[str] = None,
    ) -> UploadResult:
        """Catalog a blob the transport already wrote at ``storage_path``.

        On any failure, conflicts included, the blob is discarded before the
        error propagates.

        Raises:
            TrashedConflictError: a trashed file holds the name (whatever ``action`` is).
            ActiveConflictError: an active file holds the name and no action was given.
        """
        try:
            clean_folder = sanitize_folder_path(folder)
            conflict_action = parse_action(action)
            result = self._ingest(
                storage_path, original_name, clean_folder, owner_id, mime_type, conflict_action
            )
        except Exception:
            self._discard_blob(storage_path)
            raise

        self.sizes.refresh(clean_folder, owner_id, ensure=True)
        logger.info(
            "File uploaded",
            extra={
                "file_id": result.file.id,
                "storage_path": result.file.storage_path,
                "outcome": result.outcome,
            },
        )
        return result

    def upload_batch(
        self,
        items: List[BatchItem],
        owner_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> BatchUploadResult:
        """Catalog several already-written blobs.

        Without an action, every item is checked up front and any conflict
        rejects the whole batch (all blobs discarded). With an action, items
        are processed independently and failures are reported per item.
        """
        try:
            conflict_action = parse_action(action)
            prepared = [(item, sanitize_folder_path(item.folder)) for item in items]
        except Exception:
            self._discard_blobs(item.storage_path for item in items)
            raise

        if conflict_action is None:
            self._reject_batch_conflicts(prepared)

        result = BatchUploadResult()
        for item, folder in prepared:
            try:
                uploaded = self._ingest(
                    item.storage_path, item.original_name, folder, owner_id,
                    item.mime_type, conflict_action,
                )
            except Exception as e:
                self._discard_blob(item.storage_path)
                logger.warning(
                    "Batch upload failed for %s: %s", item.original_name, e, exc_info=True
                )
                result.results.append(BatchItemResult(
                    original_name=item.original_name,
                    storage_path=item.storage_path,
                    success=False,
                    message="Upload failed",
                    error=e.message if isinstance(e, MoxboxException) else str(e),
                ))
                continue

            result.results.append(BatchItemResult(
                original_name=uploaded.file.original_name,
                storage_path=uploaded.file.storage_path,
                success=True,
                message=uploaded.message,
                file_id=uploaded.file.id,
            ))

        for folder in sorted({folder for _, folder in prepared}):
            self.sizes.refresh(folder, owner_id, ensure=True)

        logger.info(
            "Batch upload finished",
            extra={
                "total": result.total_count,
                "succeeded": result.success_count,
                "failed": result.failure_count,
            },
        )
        return result

    def _reject_batch_conflicts(self, prepared: List[Tuple[BatchItem, str]]) -> None:
        trashed: List[str] = []
        conflicts: List[Dict[str, Any]] = []
        for item, folder in prepared:
            if self.resolver.find_trashed(item.original_name, folder) is not None:
                trashed.append(item.original_name)
                continue
            existing = self.resolver.find_active(item.original_name, folder)
            if existing is not None:
                conflicts.append({
                    "original_name": item.original_name,
                    "existing_file_id": existing.id,
                    "folder": folder,
                })

        if not trashed and not conflicts:
            return

        self._discard_blobs(item.storage_path for item, _ in prepared)
        if trashed:
            raise BatchConflictError("trashed", len(prepared), trashed_conflicts=trashed)
        raise BatchConflictError("active", len(prepared), conflicts=conflicts)

    def _ingest(
        self,
        storage_path: str,
        original_name: str,
        folder: str,
        owner_id: Optional[str],
        mime_type: Optional[str],
        action: Optional[ConflictAction],
    ) -> UploadResult:
        """Resolve conflicts, hash, and write the catalog row for one blob.

        Leaves blob cleanup on failure to the caller. The replaced blob is
        only removed after its row points at the new one.
        """
        name = _validate_display_name(original_name)
        if parent_folder(storage_path) != folder:
            raise ValidationError(
                f"Stored path '{storage_path}' is not inside folder '{folder}'", field="folder"
            )

        resolution = self.resolver.resolve(name, folder, action)

        size = self.blob_store.size(storage_path)
        digest = self.blob_store.hash_content(storage_path)
        stored_name = posixpath.basename(storage_path)

        if resolution.is_replace:
            existing = resolution.existing
            superseded_path = existing.storage_path
            record = self.file_repo.update(
                existing.id,
                stored_name=stored_name,
                mime_type=mime_type,
                size=size,
                hash_sha256=digest,
                storage_path=storage_path,
            )
            if record is None:
                raise FileRecordNotFoundError(existing.id)
            if superseded_path != storage_path:
                self._discard_blob(superseded_path)
            if parent_folder(superseded_path) != folder:
                self.sizes.refresh(parent_folder(superseded_path))
            return UploadResult(file=record, outcome="replaced")

        record = self.file_repo.create(
            original_name=resolution.final_name,
            stored_name=stored_name,
            storage_path=storage_path,
            size=size,
            mime_type=mime_type,
            hash_sha256=digest,
            owner_id=owner_id,
        )
        outcome = "renamed" if resolution.action == ConflictAction.KEEP_BOTH else "created"
        return UploadResult(file=record, outcome=outcome)

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    def move(
        self,
        file_id: str,
        destination_folder: Optional[str],
        requester_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> StoredFile:
        """Move a file into another folder.

        The blob is renamed first; if the catalog update then fails it is
        renamed back. With ``replace`` the conflicting row takes over the
        moved blob and the mover's own row is dropped.
        """
        conflict_action = parse_action(action)
        record = self.file_repo.get_by_id(file_id)
        if record.is_deleted:
            raise ValidationError("Cannot move a file in Trash. Restore it first.")
        if requester_id is not None and record.owner_id != requester_id:
            raise FileRecordNotFoundError(file_id)

        destination = sanitize_folder_path(destination_folder)
        if destination:
            dest_row = self.folder_repo.get_by_path(destination)
            if dest_row is None:
                raise ValidationError(
                    f"Destination folder does not exist: {destination}", field="destination_folder"
                )
            if requester_id is not None and dest_row.owner_id not in (None, requester_id):
                raise FolderNotFoundError(destination)

        source = record.folder
        if destination == source:
            return record

        old_path = record.storage_path
        new_path = join_storage_path(destination, record.stored_name)
        snapshot = {
            "stored_name": record.stored_name,
            "mime_type": record.mime_type,
            "size": record.size,
            "hash_sha256": record.hash_sha256,
        }

        resolution = self.resolver.resolve(
            record.original_name, destination, conflict_action, exclude_id=record.id
        )

        self.blob_store.ensure_directory(destination)
        self.blob_store.move(old_path, new_path)

        superseded_path = None
        try:
            if resolution.is_replace:
                superseded_path = resolution.existing.storage_path
                moved = self.file_repo.supersede(
                    record.id, resolution.existing.id, storage_path=new_path, **snapshot
                )
            else:
                moved = self.file_repo.update(
                    record.id, original_name=resolution.final_name, storage_path=new_path
                )
                if moved is None:
                    raise FileRecordNotFoundError(file_id)
        except Exception:
            self._undo_blob_move(new_path, old_path)
            raise

        if superseded_path and superseded_path != new_path:
            self._discard_blob(superseded_path)

        self.sizes.refresh(source)
        self.sizes.refresh(destination)
        if superseded_path and parent_folder(superseded_path) not in (source, destination):
            self.sizes.refresh(parent_folder(superseded_path))
        logger.info(
            "File moved",
            extra={"file_id": moved.id, "from": old_path, "to": new_path},
        )
        return moved

    def _undo_blob_move(self, moved_path: str, original_path: str) -> None:
        try:
            self.blob_store.move(moved_path, original_path)
        except MoxboxException as e:
            logger.error(
                "Failed to move blob back after catalog failure",
                extra={"from": moved_path, "to": original_path, "error": e.message},
            )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def update_metadata(
        self,
        file_id: str,
        original_name: Optional[str] = None,
        is_public: Optional[bool] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoredFile:
        record = self.file_repo.get_by_id(file_id)
        patch: Dict[str, Any] = {}

        if original_name is not None:
            name = _validate_display_name(original_name)
            if name != record.original_name:
                if record.is_deleted:
                    raise ValidationError("Cannot rename a file in Trash. Restore it first.")
                self.resolver.resolve(name, record.folder, exclude_id=record.id)
                patch["original_name"] = name

        if is_public is not None:
            patch["is_public"] = is_public
        if metadata is not None:
            patch["metadata_json"] = json.dumps(metadata)

        if not patch:
            return record

        updated = self.file_repo.update(file_id, **patch)
        if updated is None:
            raise FileRecordNotFoundError(file_id)
        logger.info("File metadata updated", extra={"file_id": file_id, "fields": sorted(patch)})
        return updated

    # ------------------------------------------------------------------
    # Trash lifecycle
    # ------------------------------------------------------------------

    def soft_delete(self, file_id: str) -> StoredFile:
        """Move a file to Trash. The blob stays where it is and keeps counting toward sizes."""
        record = self.file_repo.get_by_id(file_id)
        if record.is_deleted:
            return record

        self.resolver.ensure_not_trashed(record.original_name, record.folder, exclude_id=record.id)
        updated = self.file_repo.mark_deleted(file_id)
        if updated is None:
            raise FileRecordNotFoundError(file_id)

        self.sizes.refresh(updated.folder)
        logger.info("File moved to trash", extra={"file_id": file_id})
        return updated

    def restore(self, file_id: str) -> StoredFile:
        """Bring a file back from Trash.

        Raises:
            ActiveConflictError: an active file now holds the same name.
        """
        record = self.file_repo.get_by_id(file_id)
        if not record.is_deleted:
            return record

        self.resolver.resolve(record.original_name, record.folder, exclude_id=record.id)
        updated = self.file_repo.restore(file_id)
        if updated is None:
            raise FileRecordNotFoundError(file_id)

        self.sizes.refresh(updated.folder)
        logger.info("File restored", extra={"file_id": file_id})
        return updated

    def permanent_delete(self, file_id: str) -> Dict[str, str]:
        """Delete the blob, then the row.

        Any storage failure, a missing blob included, aborts with the row intact.
        """
        record = self.file_repo.get_by_id(file_id)
        folder = record.folder
        storage_path = record.storage_path

        self.blob_store.delete(storage_path)
        self.file_repo.delete_permanent(file_id)
        self.sizes.refresh(folder)
        logger.info("File permanently deleted", extra={"file_id": file_id, "storage_path": storage_path})
        return {"id": file_id}

    # ------------------------------------------------------------------
    # Compensation helpers
    # ------------------------------------------------------------------

    def _discard_blob(self, storage_path: str) -> None:
        """Best-effort blob removal used by compensation paths."""
        try:
            self.blob_store.delete(storage_path)
        except BlobNotFoundError:
            pass
        except MoxboxException as e:
            logger.warning(
                "Failed to clean up blob",
                extra={"storage_path": storage_path, "error": e.message},
            )

    def _discard_blobs(self, storage_paths) -> None:
        for path in storage_paths:
            self._discard_blob(path)
