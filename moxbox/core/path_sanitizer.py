"""Folder path validation.

Every user-supplied folder path goes through ``sanitize_folder_path`` before
it reaches the filesystem or a catalog query, and every absolute path is
built with ``resolve_secure_path`` so nothing escapes the storage root.
"""

import os
import re
from typing import Optional

from ..exceptions import InvalidPathError

MAX_PATH_LENGTH = 255
MAX_PATH_DEPTH = 10

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_\- ]+$")


def sanitize_folder_path(raw_path: Optional[str]) -> str:
    """Normalize a relative folder path.

    Returns ``""`` for the root (``None``, empty, ``"/"`` or ``"\\"``).
    Backslashes become forward slashes, surrounding slashes and empty
    segments are dropped.

    Raises:
        InvalidPathError: traversal (``..``), longer than MAX_PATH_LENGTH,
            deeper than MAX_PATH_DEPTH, or a segment with characters outside
            letters, digits, ``_``, ``-`` and space.
    """
    if raw_path is None:
        return ""

    path = str(raw_path).strip()
    if path in ("", "/", "\\"):
        return ""

    path = path.replace("\\", "/").strip("/")

    if ".." in path:
        raise InvalidPathError("Path traversal is not allowed", path=raw_path)

    if len(path) > MAX_PATH_LENGTH:
        raise InvalidPathError(
            f"Path exceeds maximum length of {MAX_PATH_LENGTH} characters",
            path=raw_path,
        )

    segments = [s for s in path.split("/") if s]
    if len(segments) > MAX_PATH_DEPTH:
        raise InvalidPathError(
            f"Path exceeds maximum depth of {MAX_PATH_DEPTH} levels",
            path=raw_path,
        )

    for segment in segments:
        if not _SEGMENT_RE.match(segment):
            raise InvalidPathError(
                f"Invalid folder name '{segment}'. Use letters, numbers, "
                "spaces, hyphens and underscores only",
                path=raw_path,
            )

    return "/".join(segments)


def resolve_secure_path(root: str, relative_path: str) -> str:
    """Join ``relative_path`` onto ``root`` and refuse anything outside it."""
    root_abs = os.path.abspath(root)
    resolved = os.path.normpath(os.path.join(root_abs, relative_path or ""))

    if os.path.commonpath([root_abs, resolved]) != root_abs:
        raise InvalidPathError("Path resolves outside the storage root", path=relative_path)

    return resolved


def parent_folder(storage_path: str) -> str:
    """Folder portion of a storage path (``""`` for root-level files)."""
    head, _, _ = storage_path.rpartition("/")
    return head


def join_storage_path(folder: str, name: str) -> str:
    return f"{folder}/{name}" if folder else name
