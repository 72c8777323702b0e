"""Database models."""

from .file import StoredFile, FileStatus
from .folder import Folder
from .user import User

__all__ = ["StoredFile", "FileStatus", "Folder", "User"]
