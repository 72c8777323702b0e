"""Filesystem blob store scoped to a single storage root.

All paths handled here are relative to the root and are resolved with
``resolve_secure_path``. OS failures surface as ``StorageError`` and
missing paths as ``BlobNotFoundError`` / ``FolderNotFoundError``.
"""

import hashlib
import logging
import os
import shutil
from dataclasses import dataclass
from functools import lru_cache
from typing import BinaryIO, Iterator, List, Optional

from ..core.config import settings
from ..core.path_sanitizer import resolve_secure_path
from ..exceptions import (
    BlobNotFoundError,
    FolderNotFoundError,
    StorageError,
    UploadTooLargeError,
)

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class DirectoryEntry:
    """One entry of a directory listing. ``size`` is only set for files."""
    name: str
    type: str
    size: Optional[int] = None


class BlobStore:
    """Blob I/O under ``root``."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    # ------------------------------------------------------------------
    # Root lifecycle
    # ------------------------------------------------------------------

    def verify_root(self, create: bool = False) -> None:
        """Check that the storage root exists and is writable.

        Raises:
            StorageError: if the root is missing (and ``create`` is False),
                not a directory, or not writable.
        """
        if not os.path.exists(self.root):
            if not create:
                raise StorageError(f"Storage root does not exist: {self.root}")
            try:
                os.makedirs(self.root, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot create storage root: {self.root}", e) from e
            logger.info("Created storage root", extra={"files_dir": self.root})

        if not os.path.isdir(self.root):
            raise StorageError(f"Storage root is not a directory: {self.root}")
        if not os.access(self.root, os.W_OK):
            raise StorageError(f"Storage root is not writable: {self.root}")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def resolve_path(self, relative_path: str) -> str:
        return resolve_secure_path(self.root, relative_path)

    def exists(self, relative_path: str) -> bool:
        return os.path.exists(self.resolve_path(relative_path))

    def is_directory(self, relative_path: str) -> bool:
        return os.path.isdir(self.resolve_path(relative_path))

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def ensure_directory(self, relative_folder: str) -> str:
        """Create ``relative_folder`` and its parents. Idempotent."""
        absolute = self.resolve_path(relative_folder)
        try:
            os.makedirs(absolute, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory: {relative_folder}", e) from e
        return absolute

    def rename_folder(self, old_relative: str, new_relative: str) -> None:
        old_abs = self.resolve_path(old_relative)
        new_abs = self.resolve_path(new_relative)
        if not os.path.isdir(old_abs):
            raise FolderNotFoundError(old_relative)
        try:
            os.makedirs(os.path.dirname(new_abs), exist_ok=True)
            os.rename(old_abs, new_abs)
        except OSError as e:
            raise StorageError(
                f"Failed to rename folder {old_relative} -> {new_relative}", e
            ) from e

    def delete_folder(self, relative_folder: str) -> None:
        """Remove an empty directory."""
        absolute = self.resolve_path(relative_folder)
        if not os.path.isdir(absolute):
            raise FolderNotFoundError(relative_folder)
        try:
            os.rmdir(absolute)
        except OSError as e:
            raise StorageError(f"Failed to delete folder (is it empty?): {relative_folder}", e) from e

    def list_directory(self, relative_folder: str) -> List[DirectoryEntry]:
        """Entries of one directory, folders first, then by name."""
        absolute = self.resolve_path(relative_folder)
        if not os.path.isdir(absolute):
            raise FolderNotFoundError(relative_folder)

        entries: List[DirectoryEntry] = []
        try:
            with os.scandir(absolute) as it:
                for entry in it:
                    if entry.is_dir(follow_symlinks=False):
                        entries.append(DirectoryEntry(name=entry.name, type="folder"))
                    elif entry.is_file(follow_symlinks=False):
                        entries.append(DirectoryEntry(
                            name=entry.name,
                            type="file",
                            size=entry.stat(follow_symlinks=False).st_size,
                        ))
        except OSError as e:
            raise StorageError(f"Failed to list directory: {relative_folder}", e) from e

        entries.sort(key=lambda e: (e.type != "folder", e.name.lower()))
        return entries

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------

    def write_stream(
        self,
        relative_path: str,
        source: BinaryIO,
        max_size: Optional[int] = None,
        chunk_size: int = HASH_CHUNK_SIZE,
    ) -> int:
        """Copy ``source`` to a new blob and return the number of bytes written.

        Refuses to overwrite an existing blob. When ``max_size`` is exceeded
        the partial blob is removed and ``UploadTooLargeError`` is raised.
        """
        absolute = self.resolve_path(relative_path)
        written = 0
        try:
            with open(absolute, "xb") as target:
                while True:
                    chunk = source.read(chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if max_size is not None and written > max_size:
                        break
                    target.write(chunk)
        except FileExistsError as e:
            raise StorageError(f"Blob already exists: {relative_path}", e) from e
        except OSError as e:
            self._discard(absolute)
            raise StorageError(f"Failed to write blob: {relative_path}", e) from e

        if max_size is not None and written > max_size:
            self._discard(absolute)
            raise UploadTooLargeError(max_size)
        return written

    def delete(self, relative_path: str) -> None:
        absolute = self.resolve_path(relative_path)
        if not os.path.isfile(absolute):
            raise BlobNotFoundError(relative_path)
        try:
            os.unlink(absolute)
        except FileNotFoundError as e:
            raise BlobNotFoundError(relative_path) from e
        except OSError as e:
            raise StorageError(f"Failed to delete blob: {relative_path}", e) from e

    def move(self, old_relative: str, new_relative: str) -> None:
        """Rename a blob. The destination must not exist."""
        old_abs = self.resolve_path(old_relative)
        new_abs = self.resolve_path(new_relative)
        if not os.path.isfile(old_abs):
            raise BlobNotFoundError(old_relative)
        if os.path.exists(new_abs):
            raise StorageError(f"Destination already exists: {new_relative}")
        try:
            os.makedirs(os.path.dirname(new_abs), exist_ok=True)
            shutil.move(old_abs, new_abs)
        except OSError as e:
            raise StorageError(
                f"Failed to move blob {old_relative} -> {new_relative}", e
            ) from e

    def size(self, relative_path: str) -> int:
        absolute = self.resolve_path(relative_path)
        try:
            return os.stat(absolute).st_size
        except FileNotFoundError as e:
            raise BlobNotFoundError(relative_path) from e
        except OSError as e:
            raise StorageError(f"Failed to stat blob: {relative_path}", e) from e

    def read_stream(self, relative_path: str, chunk_size: int = HASH_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the blob's content in chunks.

        The file is opened before the first chunk is requested so a missing
        blob fails at call time rather than mid-response.
        """
        absolute = self.resolve_path(relative_path)
        try:
            handle = open(absolute, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(relative_path) from e
        except OSError as e:
            raise StorageError(f"Failed to open blob: {relative_path}", e) from e
        return self._iter_chunks(handle, chunk_size)

    @staticmethod
    def _iter_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
        with handle:
            while True:
                chunk = handle.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def hash_content(self, relative_path: str) -> str:
        """SHA-256 hex digest of a blob, read incrementally."""
        digest = hashlib.sha256()
        for chunk in self.read_stream(relative_path):
            digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def _discard(absolute: str) -> None:
        try:
            os.unlink(absolute)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to discard partial blob", extra={"path": absolute})


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    """FastAPI dependency: the process-wide store for ``settings.files_dir``."""
    return BlobStore(settings.files_dir)
