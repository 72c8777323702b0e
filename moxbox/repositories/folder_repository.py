"""Repository for folder catalog rows."""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from .base import BaseRepository, escape_like
from ..exceptions import FolderNotFoundError
from ..models.folder import Folder


class FolderRepository(BaseRepository[Folder]):
    """Data access layer for the folders table."""

    model_class = Folder
    not_found_error = FolderNotFoundError

    def create(self, path: str, owner_id: Optional[str] = None) -> Folder:
        folder = Folder(path=path, owner_id=owner_id, size=0)
        self.db.add(folder)
        self.commit()
        self.db.refresh(folder)
        return folder

    def get_by_path(self, path: str) -> Optional[Folder]:
        return self.db.query(Folder).filter(Folder.path == path).first()

    def get_or_create(self, path: str, owner_id: Optional[str] = None) -> Folder:
        """Return the row for ``path``, inserting it if missing.

        A concurrent insert of the same path loses on the unique constraint;
        the loser re-reads the winner's row.
        """
        existing = self.get_by_path(path)
        if existing is not None:
            return existing

        folder = Folder(path=path, owner_id=owner_id, size=0)
        self.db.add(folder)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_path(path)
            if existing is None:
                raise
            return existing
        self.db.refresh(folder)
        return folder

    def update_size(self, folder_id: str, size: int) -> Optional[Folder]:
        """Persist a new cached size, clamped to zero."""
        folder = self.get_by_id_optional(folder_id)
        if folder is None:
            return None
        folder.size = max(0, int(size))
        self.commit()
        self.db.refresh(folder)
        return folder

    def delete_by_path(self, path: str) -> bool:
        folder = self.get_by_path(path)
        if folder is None:
            return False
        self.db.delete(folder)
        self.commit()
        return True

    def list_folders(
        self,
        owner_id: Optional[str] = None,
        path_prefix: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Folder]:
        query = self.db.query(Folder)
        if owner_id is not None:
            query = query.filter(Folder.owner_id == owner_id)
        if path_prefix:
            query = query.filter(
                (Folder.path == path_prefix)
                | (Folder.path.like(f"{escape_like(path_prefix)}/%", escape="\\"))
            )
        query = query.order_by(Folder.path)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def replace_prefix(self, old_path: str, new_path: str, commit: bool = True) -> List[str]:
        """Re-key ``old_path`` and its descendants under ``new_path``.

        Rows are path-keyed, so each one is deleted and recreated with the
        same owner and cached size. Stale rows already sitting at the new
        paths are dropped first. Returns the new paths.
        """
        moved = self.list_folders(path_prefix=old_path)
        snapshot = [(f.path, f.owner_id, f.size) for f in moved]

        for stale in self.list_folders(path_prefix=new_path):
            self.db.delete(stale)
        for folder in moved:
            self.db.delete(folder)
        self.flush()

        new_paths = []
        for path, owner_id, size in snapshot:
            target = new_path + path[len(old_path):]
            self.db.add(Folder(path=target, owner_id=owner_id, size=size))
            new_paths.append(target)

        if commit:
            self.commit()
        return new_paths
