"""Filesystem blob storage."""

from .blob_store import BlobStore, DirectoryEntry, get_blob_store

__all__ = ["BlobStore", "DirectoryEntry", "get_blob_store"]
