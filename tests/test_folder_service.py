"""Unit tests for FolderService: create, rename, delete, list."""

import pytest

from moxbox.exceptions import (
    CatalogError,
    FolderNotFoundError,
    InvalidPathError,
    ValidationError,
)
from moxbox.repositories import FileRepository, FolderRepository
from moxbox.services.file_service import FileService
from moxbox.services.folder_service import FolderService
from tests.conftest import write_blob


@pytest.fixture()
def folders(db, blob_store) -> FolderService:
    return FolderService(db, blob_store)


def _upload(db, blob_store, name, folder, content=b"abc"):
    path = write_blob(blob_store, folder, content)
    return FileService(db, blob_store).upload(path, name, folder, owner_id="u1").file


class TestCreate:

    def test_creates_directory_and_rows(self, folders, blob_store, db):
        folder = folders.create_folder("projects/alpha", owner_id="u1")
        assert folder.path == "projects/alpha"
        assert folder.size == 0
        assert blob_store.is_directory("projects/alpha")
        assert FolderRepository(db).get_by_path("projects") is not None

    def test_existing_directory_rejected(self, folders):
        folders.create_folder("docs")
        with pytest.raises(ValidationError):
            folders.create_folder("docs")

    def test_root_rejected(self, folders):
        with pytest.raises(ValidationError):
            folders.create_folder("/")

    def test_invalid_name(self, folders):
        with pytest.raises(InvalidPathError):
            folders.create_folder("bad/../name")


class TestRename:

    def test_moves_contents_and_rekeys_rows(self, folders, blob_store, db):
        folders.create_folder("old/child")
        a = _upload(db, blob_store, "a.txt", "old", content=b"12345")
        b = _upload(db, blob_store, "b.txt", "old/child", content=b"12")
        a_id, b_id = a.id, b.id

        renamed = folders.rename_folder("old", "new")

        assert renamed.path == "new"
        assert renamed.size == 7
        assert not blob_store.exists("old")
        repo = FileRepository(db)
        for file_id in (a_id, b_id):
            record = repo.get_by_id(file_id)
            assert record.storage_path.startswith("new/")
            assert blob_store.exists(record.storage_path)
        folder_repo = FolderRepository(db)
        assert folder_repo.get_by_path("old") is None
        assert folder_repo.get_by_path("new/child").size == 2

    def test_move_under_another_folder(self, folders, blob_store, db):
        folders.create_folder("a")
        folders.create_folder("b")
        _upload(db, blob_store, "f.txt", "a", content=b"1234")

        folders.rename_folder("a", "b/a")

        folder_repo = FolderRepository(db)
        assert folder_repo.get_by_path("b").size == 4
        assert folder_repo.get_by_path("b/a").size == 4

    def test_into_itself_rejected(self, folders):
        folders.create_folder("a")
        with pytest.raises(ValidationError):
            folders.rename_folder("a", "a/b")

    def test_destination_exists(self, folders):
        folders.create_folder("a")
        folders.create_folder("b")
        with pytest.raises(ValidationError):
            folders.rename_folder("a", "b")

    def test_missing_source(self, folders):
        with pytest.raises(FolderNotFoundError):
            folders.rename_folder("ghost", "b")

    def test_catalog_failure_renames_directory_back(self, folders, blob_store, db, monkeypatch):
        folders.create_folder("a")
        path = write_blob(blob_store, "a")

        def _fail(*args, **kwargs):
            raise CatalogError("rename failed")

        monkeypatch.setattr(folders.folder_repo, "replace_prefix", _fail)
        with pytest.raises(CatalogError):
            folders.rename_folder("a", "b")

        assert blob_store.exists(path)
        assert not blob_store.exists("b")


class TestDelete:

    def test_empty_folder(self, folders, blob_store, db):
        folders.create_folder("tmp")
        folders.delete_folder("tmp")
        assert not blob_store.exists("tmp")
        assert FolderRepository(db).get_by_path("tmp") is None

    def test_non_empty_rejected(self, folders, blob_store, db):
        folders.create_folder("docs")
        _upload(db, blob_store, "a.txt", "docs")
        with pytest.raises(ValidationError):
            folders.delete_folder("docs")
        assert blob_store.is_directory("docs")

    def test_missing(self, folders):
        with pytest.raises(FolderNotFoundError):
            folders.delete_folder("ghost")

    def test_root_rejected(self, folders):
        with pytest.raises(ValidationError):
            folders.delete_folder("")


class TestListing:

    def test_contents_enriched_from_catalog(self, folders, blob_store, db):
        folders.create_folder("docs/sub")
        record = _upload(db, blob_store, "a.txt", "docs", content=b"hello")
        record_id, stored_name = record.id, record.stored_name
        write_blob(blob_store, "docs", b"orphan")

        contents = folders.list_contents("/docs/")

        assert contents.path == "docs"
        assert contents.entries[0].type == "folder"
        assert contents.entries[0].path == "docs/sub"
        assert contents.entries[0].size == 0
        tracked = [e for e in contents.entries if e.file_id is not None]
        assert len(tracked) == 1
        assert tracked[0].file_id == record_id
        assert tracked[0].name == stored_name
        assert tracked[0].original_name == "a.txt"
        assert tracked[0].size == 5
        untracked = [e for e in contents.entries if e.type == "file" and e.file_id is None]
        assert len(untracked) == 1

    def test_missing_directory(self, folders):
        with pytest.raises(FolderNotFoundError):
            folders.list_contents("ghost")

    def test_root_info(self, folders, blob_store, db):
        _upload(db, blob_store, "a.txt", "", content=b"123")
        _upload(db, blob_store, "b.txt", "x", content=b"4567")
        assert folders.get_root_info().size == 7

    def test_list_folders_by_prefix(self, folders):
        folders.create_folder("a/b")
        folders.create_folder("c")
        assert [f.path for f in folders.list_folders(path_prefix="a")] == ["a", "a/b"]
