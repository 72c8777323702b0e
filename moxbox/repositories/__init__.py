"""Catalog repositories."""

from .file_repository import FileRepository
from .folder_repository import FolderRepository

__all__ = ["FileRepository", "FolderRepository"]
