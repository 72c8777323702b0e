"""Upload transport: writes incoming streams into the storage root.

One ``UploadSession`` per request. It remembers every blob it wrote and
every directory it had to create, so a request that fails or is abandoned
can be rolled back with ``abort_cleanup()``. Once the request has been
handed to ``FileService`` successfully, ``complete()`` marks the session
committed and cleanup becomes a no-op.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Iterable, List, Optional

from ..core.path_sanitizer import join_storage_path, sanitize_folder_path
from ..exceptions import (
    BlobNotFoundError,
    FolderNotFoundError,
    MoxboxException,
    ValidationError,
)
from ..storage.blob_store import BlobStore
from .folder_size_service import ancestor_paths

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class ReceivedBlob:
    storage_path: str
    stored_name: str
    original_name: str
    folder: str
    mime_type: str
    size: int


def clean_original_name(raw_name: Optional[str]) -> str:
    """Leaf of a client-supplied file name (browsers may send a full path)."""
    name = os.path.basename((raw_name or "").replace("\\", "/")).strip()
    if not name:
        raise ValidationError("Uploaded file has no name", field="file")
    return name


class UploadSession:
    """Tracks the side effects of one upload request."""

    def __init__(
        self,
        blob_store: BlobStore,
        max_file_size: Optional[int] = None,
        disallowed_mime_types: Iterable[str] = (),
    ):
        self.blob_store = blob_store
        self.max_file_size = max_file_size
        self.disallowed_mime_types = {m.lower() for m in disallowed_mime_types}
        self.written: List[str] = []
        self.created_dirs: List[str] = []
        self.completed = False
        self.cleaned = False

    def receive(
        self,
        source: BinaryIO,
        original_name: Optional[str],
        folder: Optional[str],
        mime_type: Optional[str] = None,
    ) -> ReceivedBlob:
        """Validate and write one incoming file under a generated name."""
        if self.completed or self.cleaned:
            raise RuntimeError("Upload session is closed")

        name = clean_original_name(original_name)
        clean_folder = sanitize_folder_path(folder)
        mime = (mime_type or DEFAULT_MIME_TYPE).lower()
        if mime in self.disallowed_mime_types:
            raise ValidationError(
                f"File type not allowed: {mime}. Blocked types: "
                f"{', '.join(sorted(self.disallowed_mime_types))}",
                field="file",
            )

        self._ensure_folder(clean_folder)

        stored_name = f"{uuid.uuid4()}{os.path.splitext(name)[1]}"
        storage_path = join_storage_path(clean_folder, stored_name)
        self.written.append(storage_path)
        size = self.blob_store.write_stream(storage_path, source, max_size=self.max_file_size)

        logger.debug(
            "Blob received",
            extra={"storage_path": storage_path, "size": size, "mime_type": mime},
        )
        return ReceivedBlob(
            storage_path=storage_path,
            stored_name=stored_name,
            original_name=name,
            folder=clean_folder,
            mime_type=mime,
            size=size,
        )

    def _ensure_folder(self, folder: str) -> None:
        for path in ancestor_paths(folder):
            if not self.blob_store.exists(path):
                self.created_dirs.append(path)
        self.blob_store.ensure_directory(folder)

    def complete(self) -> None:
        """Mark every written blob as owned by the catalog."""
        self.completed = True

    def abort_cleanup(self) -> int:
        """Remove uncommitted blobs and the directories created for them.

        Idempotent, and a no-op after ``complete()``. Directories are only
        removed while empty. Returns the number of blobs removed.
        """
        if self.completed or self.cleaned:
            return 0
        self.cleaned = True

        removed = 0
        for path in self.written:
            try:
                self.blob_store.delete(path)
                removed += 1
            except BlobNotFoundError:
                pass
            except MoxboxException as e:
                logger.warning("Abort cleanup could not remove blob", extra={"storage_path": path, "error": e.message})

        for folder in sorted(set(self.created_dirs), key=lambda p: p.count("/"), reverse=True):
            try:
                self.blob_store.delete_folder(folder)
            except FolderNotFoundError:
                pass
            except MoxboxException:
                # still holds other content
                logger.debug("Kept directory during abort cleanup", extra={"folder": folder})

        if removed:
            logger.info("Upload aborted, cleaned up blobs", extra={"removed": removed})
        return removed
