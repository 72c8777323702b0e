"""Custom exception hierarchy for moxbox."""

from enum import Enum
from typing import Optional, Dict, Any, List


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Path errors
    INVALID_PATH = "INVALID_PATH"

    # Lookup errors
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    BLOB_NOT_FOUND = "BLOB_NOT_FOUND"

    # Naming conflicts
    TRASHED_CONFLICT = "TRASHED_CONFLICT"
    ACTIVE_CONFLICT = "ACTIVE_CONFLICT"
    BATCH_CONFLICT = "BATCH_CONFLICT"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"

    # Backing store errors
    STORAGE_ERROR = "STORAGE_ERROR"
    CATALOG_ERROR = "CATALOG_ERROR"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MoxboxException(Exception):
    """
    Base exception for all moxbox errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class InvalidPathError(MoxboxException):
    """User-supplied path failed sanitization."""

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path is not None else {}
        super().__init__(
            message,
            ErrorCode.INVALID_PATH,
            status_code=400,
            details=details
        )


class NotFoundError(MoxboxException):
    """Referenced file, folder, or blob does not exist."""


class FileRecordNotFoundError(NotFoundError):
    """File row not found in the catalog."""

    def __init__(self, file_id: str):
        super().__init__(
            f"File not found: {file_id}",
            ErrorCode.FILE_NOT_FOUND,
            status_code=404,
            details={"file_id": file_id}
        )


class FolderNotFoundError(NotFoundError):
    """Folder not found in the catalog or on disk."""

    def __init__(self, path: str):
        super().__init__(
            f"Folder not found: {path}",
            ErrorCode.FOLDER_NOT_FOUND,
            status_code=404,
            details={"path": path}
        )


class BlobNotFoundError(NotFoundError):
    """Blob missing from the storage root."""

    def __init__(self, storage_path: str):
        super().__init__(
            f"Stored file not found: {storage_path}",
            ErrorCode.BLOB_NOT_FOUND,
            status_code=404,
            details={"storage_path": storage_path}
        )


class TrashedConflictError(MoxboxException):
    """A deleted file with the same name occupies the target folder.

    Hard block: never resolved by replace/keep_both.
    """

    def __init__(self, original_name: str, folder: str, trashed_id: Optional[str] = None):
        super().__init__(
            f"Blocked: '{original_name}' exists in Trash. Restore or delete it first.",
            ErrorCode.TRASHED_CONFLICT,
            status_code=409,
            details={
                "type": "trashed",
                "original_name": original_name,
                "folder": folder,
                "trashed_id": trashed_id,
            }
        )
        self.original_name = original_name
        self.folder = folder
        self.trashed_id = trashed_id


class ActiveConflictError(MoxboxException):
    """An active file with the same name occupies the target folder."""

    def __init__(self, original_name: str, folder: str, existing_id: str):
        super().__init__(
            "A file with the same name already exists in this folder.",
            ErrorCode.ACTIVE_CONFLICT,
            status_code=409,
            details={
                "type": "active",
                "existing_id": existing_id,
                "original_name": original_name,
                "folder": folder,
            }
        )
        self.original_name = original_name
        self.folder = folder
        self.existing_id = existing_id


class BatchConflictError(MoxboxException):
    """A batch upload without an action hit one or more naming conflicts."""

    def __init__(
        self,
        conflict_type: str,
        total_files: int,
        trashed_conflicts: Optional[List[str]] = None,
        conflicts: Optional[List[Dict[str, Any]]] = None,
    ):
        if conflict_type == "trashed":
            message = "Some files exist in Trash. Restore or delete them first."
            details: Dict[str, Any] = {"trashed_conflicts": trashed_conflicts or []}
        else:
            message = "Some files already exist in the target folders."
            details = {"conflicts": conflicts or []}
        details["type"] = conflict_type
        details["total_files"] = total_files
        super().__init__(
            message,
            ErrorCode.BATCH_CONFLICT,
            status_code=409,
            details=details
        )
        self.conflict_type = conflict_type


class ValidationError(MoxboxException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class UploadTooLargeError(MoxboxException):
    """Upload exceeded the configured size limit."""

    def __init__(self, max_size: int):
        super().__init__(
            f"File exceeds the maximum upload size of {max_size} bytes",
            ErrorCode.UPLOAD_TOO_LARGE,
            status_code=413,
            details={"max_size": max_size}
        )


class StorageError(MoxboxException):
    """Filesystem operation failed.

    The original OSError is kept on the instance but never serialized;
    clients only see an opaque server error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message,
            ErrorCode.STORAGE_ERROR,
            status_code=500,
        )
        self.original_error = original_error


class CatalogError(MoxboxException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(
            message,
            ErrorCode.CATALOG_ERROR,
            status_code=500,
        )
        self.original_error = original_error


class AuthenticationError(MoxboxException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(MoxboxException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )
