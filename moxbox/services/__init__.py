"""Business logic services."""

from .file_service import FileService
from .folder_service import FolderService

__all__ = ["FileService", "FolderService"]
