"""Name-conflict detection for uploads, moves, renames and restores."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..exceptions import ActiveConflictError, TrashedConflictError, ValidationError
from ..models.file import StoredFile
from ..repositories.file_repository import FileRepository


class ConflictAction(str, Enum):
    """How the caller wants an active name conflict resolved."""
    REPLACE = "replace"
    KEEP_BOTH = "keep_both"


def parse_action(raw: Optional[str]) -> Optional[ConflictAction]:
    """Parse an optional action string. Empty means no action."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, ConflictAction):
        return raw
    try:
        return ConflictAction(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid action '{raw}'. Use 'replace' or 'keep_both'", field="action"
        ) from None


@dataclass
class Resolution:
    """Outcome of a conflict check.

    ``existing`` is the active file holding the name when ``action`` is
    REPLACE or KEEP_BOTH; ``final_name`` is the name the new or moved
    file should carry.
    """
    final_name: str
    action: Optional[ConflictAction] = None
    existing: Optional[StoredFile] = None

    @property
    def is_replace(self) -> bool:
        return self.action == ConflictAction.REPLACE and self.existing is not None


class ConflictResolver:
    """Decides whether ``(name, folder)`` is free and how to proceed if not.

    A trashed file with the same name is a hard block whatever the action.
    An active one needs an explicit action; without it the conflict is
    raised with the existing file's id so the client can pick one.
    """

    def __init__(self, file_repo: FileRepository):
        self.file_repo = file_repo

    def find_trashed(
        self, original_name: str, folder: str, exclude_id: Optional[str] = None
    ) -> Optional[StoredFile]:
        return self.file_repo.get_deleted_by_name_and_folder(original_name, folder, exclude_id)

    def find_active(
        self, original_name: str, folder: str, exclude_id: Optional[str] = None
    ) -> Optional[StoredFile]:
        return self.file_repo.get_active_by_name_and_folder(original_name, folder, exclude_id)

    def ensure_not_trashed(
        self, original_name: str, folder: str, exclude_id: Optional[str] = None
    ) -> None:
        trashed = self.find_trashed(original_name, folder, exclude_id)
        if trashed is not None:
            raise TrashedConflictError(original_name, folder, trashed.id)

    def resolve(
        self,
        original_name: str,
        folder: str,
        action: Optional[ConflictAction] = None,
        exclude_id: Optional[str] = None,
    ) -> Resolution:
        """Check both conflict kinds and return the resolution to apply.

        Raises:
            TrashedConflictError: a deleted file holds the name.
            ActiveConflictError: an active file holds the name and no action was given.
        """
        self.ensure_not_trashed(original_name, folder, exclude_id)

        existing = self.find_active(original_name, folder, exclude_id)
        if existing is None:
            return Resolution(final_name=original_name)

        if action is None:
            raise ActiveConflictError(original_name, folder, existing.id)

        if action == ConflictAction.REPLACE:
            return Resolution(final_name=original_name, action=action, existing=existing)

        unique = self.file_repo.generate_unique_name_in_folder(original_name, folder)
        return Resolution(final_name=unique, action=action, existing=existing)
