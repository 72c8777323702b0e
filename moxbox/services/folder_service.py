"""Deep module for folder operations: create, rename, delete, list.

Folders exist both as directories under the storage root and as path-keyed
catalog rows caching their size. As with files, the directory change comes
first and the catalog change second; a failed catalog rename puts the
directory back.

Public methods:
    create_folder       -- directory + row; rejects existing directories
    rename_folder       -- moves the directory, re-keys rows, rewrites file paths
    delete_folder       -- empty directories only
    list_contents       -- directory listing enriched with catalog data
    get_root_info       -- bytes used under the storage root
    list_folders        -- tracked folder rows
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.path_sanitizer import sanitize_folder_path, join_storage_path, parent_folder
from ..exceptions import FolderNotFoundError, MoxboxException, ValidationError
from ..models.folder import Folder
from ..repositories.file_repository import FileRepository
from ..repositories.folder_repository import FolderRepository
from ..schemas.folder import DirectoryEntry, FolderContentsResponse, RootFolderInfo
from ..storage.blob_store import BlobStore
from .folder_size_service import FolderSizeService

logger = logging.getLogger(__name__)

FOLDER_EXISTS_MESSAGE = "A folder with that name already exists in this location."


class FolderService:
    """Folder operations over a catalog session and a blob store."""

    def __init__(self, db: Session, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)
        self.sizes = FolderSizeService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_folders(
        self,
        owner_id: Optional[str] = None,
        path_prefix: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Folder]:
        prefix = sanitize_folder_path(path_prefix) if path_prefix else None
        return self.folder_repo.list_folders(
            owner_id=owner_id, path_prefix=prefix, limit=limit, offset=offset
        )

    def get_root_info(self) -> RootFolderInfo:
        return RootFolderInfo(path="", size=self.sizes.calculate_total())

    def list_contents(self, raw_path: Optional[str] = None) -> FolderContentsResponse:
        path = sanitize_folder_path(raw_path)
        listing = self.blob_store.list_directory(path)
        files_by_stored_name = {f.stored_name: f for f in self.file_repo.list_in_folder(path)}

        entries: List[DirectoryEntry] = []
        for item in listing:
            child = join_storage_path(path, item.name)
            if item.type == "folder":
                row = self.folder_repo.get_by_path(child)
                entries.append(DirectoryEntry(
                    name=item.name,
                    type="folder",
                    path=child,
                    size=row.size if row is not None else None,
                ))
                continue

            record = files_by_stored_name.get(item.name)
            entries.append(DirectoryEntry(
                name=item.name,
                type="file",
                path=child,
                size=item.size,
                file_id=record.id if record else None,
                original_name=record.original_name if record else None,
                mime_type=record.mime_type if record else None,
                status=record.status if record else None,
            ))
        return FolderContentsResponse(path=path, entries=entries)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_folder(self, raw_path: Optional[str], owner_id: Optional[str] = None) -> Folder:
        path = sanitize_folder_path(raw_path)
        if not path:
            raise ValidationError("Folder path is required", field="path")
        if self.blob_store.exists(path):
            raise ValidationError(FOLDER_EXISTS_MESSAGE, field="path")

        self.blob_store.ensure_directory(path)
        self.sizes.ensure_and_recalculate(path, owner_id)

        logger.info("Folder created", extra={"folder": path})
        return self.folder_repo.get_by_path(path)

    def rename_folder(
        self,
        raw_old_path: Optional[str],
        raw_new_path: Optional[str],
        owner_id: Optional[str] = None,
    ) -> Folder:
        """Rename or move a folder with everything beneath it.

        File rows beneath it get their storage paths rewritten and folder
        rows are re-keyed, all in one catalog commit.
        """
        old_path = sanitize_folder_path(raw_old_path)
        new_path = sanitize_folder_path(raw_new_path)
        if not old_path or not new_path:
            raise ValidationError("Both old and new folder paths are required")
        if old_path == new_path:
            raise ValidationError("New folder path must differ from the old one", field="new_path")
        if new_path.startswith(f"{old_path}/"):
            raise ValidationError("Cannot move a folder into itself", field="new_path")
        if not self.blob_store.is_directory(old_path):
            raise FolderNotFoundError(old_path)
        if self.blob_store.exists(new_path):
            raise ValidationError(FOLDER_EXISTS_MESSAGE, field="new_path")

        self.blob_store.rename_folder(old_path, new_path)

        try:
            moved_files = self.file_repo.repath_prefix(old_path, new_path, commit=False)
            self.folder_repo.replace_prefix(old_path, new_path, commit=False)
            self.folder_repo.commit()
        except Exception:
            self.db.rollback()
            try:
                self.blob_store.rename_folder(new_path, old_path)
            except MoxboxException as e:
                logger.error(
                    "Failed to restore folder after catalog failure",
                    extra={"from": new_path, "to": old_path, "error": e.message},
                )
            raise

        self.sizes.refresh(parent_folder(old_path))
        self.sizes.refresh(new_path, owner_id, ensure=True)

        logger.info(
            "Folder renamed",
            extra={"from": old_path, "to": new_path, "files": moved_files},
        )
        return self.folder_repo.get_by_path(new_path)

    def delete_folder(self, raw_path: Optional[str]) -> None:
        """Delete an empty folder and its row."""
        path = sanitize_folder_path(raw_path)
        if not path:
            raise ValidationError("Cannot delete the root folder", field="path")
        if self.blob_store.list_directory(path):
            raise ValidationError("Folder is not empty", field="path")

        self.blob_store.delete_folder(path)
        self.folder_repo.delete_by_path(path)
        self.sizes.refresh(parent_folder(path))
        logger.info("Folder deleted", extra={"folder": path})
