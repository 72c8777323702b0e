"""Shared test fixtures for the moxbox test suite.

Every run gets its own temporary directory holding the SQLite catalog and
the storage root. Each test starts from empty tables and an empty storage
root, so tests are independent of each other and of the order they run in.
"""

import io
import os
import shutil
import tempfile
import uuid

# Point the app at a throwaway catalog and storage root before any app imports.
_TEST_DIR = tempfile.mkdtemp(prefix="moxbox-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'catalog.db')}"
os.environ["FILES_DIR"] = os.path.join(_TEST_DIR, "files")
os.environ["LOGIN_FILE"] = os.path.join(_TEST_DIR, "LOGIN.txt")
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import pytest
from fastapi.testclient import TestClient

from moxbox.database import SessionLocal, get_db, init_db
from moxbox.main import app
from moxbox.models import Folder, StoredFile, User
from moxbox.storage.blob_store import BlobStore, get_blob_store

init_db()
get_blob_store().verify_root(create=True)


@pytest.fixture(autouse=True)
def _clean_state():
    """Empty every table and the storage root before each test.

    Runs before the test (not after) so a failing test leaves its data
    behind for debugging.
    """
    db = SessionLocal()
    try:
        db.query(StoredFile).delete()
        db.query(Folder).delete()
        db.query(User).delete()
        db.commit()
    finally:
        db.close()

    root = get_blob_store().root
    for entry in os.listdir(root):
        full = os.path.join(root, entry)
        if os.path.isdir(full):
            shutil.rmtree(full)
        else:
            os.unlink(full)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def blob_store() -> BlobStore:
    """The process-wide store the API uses, rooted in the test directory."""
    return get_blob_store()


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def write_blob(blob_store: BlobStore, folder: str = "", content: bytes = b"hello", ext: str = ".txt") -> str:
    """Write a blob under a fresh stored name, the way an upload session does."""
    blob_store.ensure_directory(folder)
    stored_name = f"{uuid.uuid4()}{ext}"
    storage_path = f"{folder}/{stored_name}" if folder else stored_name
    blob_store.write_stream(storage_path, io.BytesIO(content))
    return storage_path
