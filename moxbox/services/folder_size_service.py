"""Cached folder sizes.

A folder's ``size`` is the byte total of every file, active or trashed,
anywhere beneath it. Values are cached on the folder row and recomputed
from the files table wherever they can change; every recalculation is
independent and idempotent, so a partially updated chain heals on the
next call.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..exceptions import CatalogError
from ..repositories.file_repository import FileRepository
from ..repositories.folder_repository import FolderRepository

logger = logging.getLogger(__name__)


def ancestor_paths(folder_path: str) -> List[str]:
    """Every prefix of ``folder_path``, root-most first.

    >>> ancestor_paths("a/b/c")
    ['a', 'a/b', 'a/b/c']
    """
    parts = [p for p in folder_path.split("/") if p]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


class FolderSizeService:
    """Computes and persists folder sizes."""

    def __init__(self, db: Session):
        self.db = db
        self.file_repo = FileRepository(db)
        self.folder_repo = FolderRepository(db)

    def calculate_from_files(self, folder_path: str) -> int:
        return self.file_repo.sum_sizes_under(folder_path)

    def calculate_total(self) -> int:
        """Bytes used under the storage root."""
        return self.file_repo.sum_sizes_under("")

    def recalculate(self, folder_path: str) -> Optional[int]:
        """Recompute and store the size of one folder.

        Returns None when the folder has no row yet.
        """
        folder = self.folder_repo.get_by_path(folder_path)
        if folder is None:
            return None
        size = self.calculate_from_files(folder_path)
        updated = self.folder_repo.update_size(folder.id, size)
        logger.debug("Folder size recalculated", extra={"folder": folder_path, "size": size})
        return updated.size if updated else None

    def recalculate_ancestors(self, folder_path: str) -> None:
        """Recalculate ``folder_path`` and each ancestor, self to root."""
        for path in reversed(ancestor_paths(folder_path)):
            self.recalculate(path)

    def ensure_and_recalculate(self, folder_path: str, owner_id: Optional[str] = None) -> None:
        """Create missing rows for every prefix of ``folder_path``, then recalculate them."""
        paths = ancestor_paths(folder_path)
        for path in paths:
            self.folder_repo.get_or_create(path, owner_id)
        for path in reversed(paths):
            self.recalculate(path)

    def refresh(self, folder_path: str, owner_id: Optional[str] = None, ensure: bool = False) -> None:
        """Best-effort recalculation after a completed file operation.

        The file operation has already succeeded; a catalog failure here only
        leaves a stale cache, which the next recalculation fixes.
        """
        try:
            if ensure:
                self.ensure_and_recalculate(folder_path, owner_id)
            else:
                self.recalculate_ancestors(folder_path)
        except CatalogError as e:
            logger.warning(
                "Folder size refresh failed",
                extra={"folder": folder_path, "error": str(e.original_error or e)},
            )
