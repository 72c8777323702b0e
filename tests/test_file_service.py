"""Unit tests for FileService, the deep module owning the file lifecycle.

Tests the service layer directly against the test catalog and storage
root, bypassing the HTTP stack. Covers upload conflicts, batch uploads,
moves, the trash lifecycle, and compensation when one of the two stores
fails halfway through an operation.
"""

import pytest

from moxbox.exceptions import (
    ActiveConflictError,
    BatchConflictError,
    BlobNotFoundError,
    CatalogError,
    FileRecordNotFoundError,
    FolderNotFoundError,
    StorageError,
    TrashedConflictError,
    ValidationError,
)
from moxbox.models import FileStatus, StoredFile
from moxbox.repositories import FileRepository, FolderRepository
from moxbox.services.file_service import BatchItem, FileService
from tests.conftest import write_blob


@pytest.fixture()
def svc(db, blob_store) -> FileService:
    return FileService(db, blob_store)


def _upload(svc, blob_store, name, folder="docs", content=b"x" * 500, action=None, owner_id="u1"):
    ext = "." + name.rsplit(".", 1)[1] if "." in name else ""
    path = write_blob(blob_store, folder, content, ext)
    return svc.upload(path, name, folder, owner_id=owner_id, action=action), path


def _folder_size(db, path):
    return FolderRepository(db).get_by_path(path).size


def _rows(db):
    return db.query(StoredFile).count()


class TestUploadScenarios:
    """The report.pdf walk-through: create, conflict, keep both, trash, move."""

    def test_first_upload_creates_folder_and_row(self, svc, blob_store, db):
        result, path = _upload(svc, blob_store, "report.pdf")
        assert result.outcome == "created"
        assert result.message == "Uploaded"
        assert result.file.status == FileStatus.ACTIVE.value
        assert result.file.storage_path == path
        assert result.file.size == 500
        assert result.file.owner_id == "u1"
        assert len(result.file.hash_sha256) == 64
        assert _folder_size(db, "docs") == 500

    def test_second_upload_without_action_conflicts(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "report.pdf")
        with pytest.raises(ActiveConflictError) as exc_info:
            _upload(svc, blob_store, "report.pdf")
        assert exc_info.value.existing_id == first.file.id
        assert _rows(db) == 1
        assert len(blob_store.list_directory("docs")) == 1

    def test_keep_both_renames(self, svc, blob_store, db):
        _upload(svc, blob_store, "report.pdf")
        second, _ = _upload(svc, blob_store, "report.pdf", action="keep_both")
        assert second.outcome == "renamed"
        assert second.file.original_name == "report (1).pdf"
        assert _folder_size(db, "docs") == 1000

    def test_trashed_name_blocks_upload(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "report.pdf")
        svc.soft_delete(first.file.id)
        with pytest.raises(TrashedConflictError):
            _upload(svc, blob_store, "report.pdf")

    @pytest.mark.parametrize("action", ["replace", "keep_both"])
    def test_trashed_block_ignores_action(self, svc, blob_store, db, action):
        first, _ = _upload(svc, blob_store, "report.pdf")
        svc.soft_delete(first.file.id)
        with pytest.raises(TrashedConflictError):
            _upload(svc, blob_store, "report.pdf", action=action)
        assert _rows(db) == 1
        assert len(blob_store.list_directory("docs")) == 1

    def test_move_shifts_size_between_folders(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "report.pdf")
        second, _ = _upload(svc, blob_store, "report.pdf", action="keep_both")
        svc.soft_delete(first.file.id)
        FolderRepository(db).get_or_create("archive")
        before = _folder_size(db, "docs")

        moved = svc.move(second.file.id, "archive")

        assert moved.storage_path.startswith("archive/")
        assert blob_store.exists(moved.storage_path)
        assert _folder_size(db, "docs") == before - 500
        assert _folder_size(db, "archive") == 500


class TestUpload:

    def test_replace_updates_existing_row(self, svc, blob_store, db):
        first, old_path = _upload(svc, blob_store, "a.txt", content=b"old")
        second, new_path = _upload(svc, blob_store, "a.txt", content=b"newer", action="replace")

        assert second.outcome == "replaced"
        assert second.file.id == first.file.id
        assert second.file.storage_path == new_path
        assert second.file.size == 5
        assert not blob_store.exists(old_path)
        assert _rows(db) == 1
        assert _folder_size(db, "docs") == 5

    def test_replace_keeps_original_owner(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "a.txt", owner_id="u1")
        second, _ = _upload(svc, blob_store, "a.txt", action="replace", owner_id="u2")
        assert second.file.id == first.file.id
        assert second.file.owner_id == "u1"

    def test_namesake_in_subfolder_conflicts(self, svc, blob_store, db):
        nested, _ = _upload(svc, blob_store, "a.txt", folder="docs/sub")
        path = write_blob(blob_store, "docs", b"top", ".txt")

        with pytest.raises(ActiveConflictError) as exc_info:
            svc.upload(path, "a.txt", "docs")

        assert exc_info.value.existing_id == nested.file.id
        assert not blob_store.exists(path)
        assert _rows(db) == 1

    def test_replace_of_nested_namesake_updates_both_sizes(self, svc, blob_store, db):
        nested, _ = _upload(svc, blob_store, "a.txt", folder="docs/sub")
        assert _folder_size(db, "docs/sub") == 500

        result, path = _upload(svc, blob_store, "a.txt", content=b"abc", action="replace")

        assert result.file.id == nested.file.id
        assert result.file.storage_path == path
        assert _folder_size(db, "docs/sub") == 0
        assert _folder_size(db, "docs") == 3

    def test_upload_to_root(self, svc, blob_store, db):
        result, path = _upload(svc, blob_store, "a.txt", folder="")
        assert result.file.folder == ""
        assert FolderRepository(db).get_by_path("") is None

    def test_invalid_action_discards_blob(self, svc, blob_store):
        path = write_blob(blob_store, "docs")
        with pytest.raises(ValidationError):
            svc.upload(path, "a.txt", "docs", action="merge")
        assert not blob_store.exists(path)

    def test_catalog_failure_discards_blob(self, svc, blob_store, db, monkeypatch):
        def _fail(**kwargs):
            raise CatalogError("insert failed")

        monkeypatch.setattr(svc.file_repo, "create", _fail)
        path = write_blob(blob_store, "docs")
        with pytest.raises(CatalogError):
            svc.upload(path, "a.txt", "docs")
        assert not blob_store.exists(path)
        assert _rows(db) == 0

    def test_blob_outside_folder_rejected(self, svc, blob_store):
        path = write_blob(blob_store, "elsewhere")
        with pytest.raises(ValidationError):
            svc.upload(path, "a.txt", "docs")
        assert not blob_store.exists(path)

    def test_names_unique_per_folder_and_status(self, svc, blob_store, db):
        _upload(svc, blob_store, "a.txt")
        _upload(svc, blob_store, "a.txt", action="keep_both")
        _upload(svc, blob_store, "a.txt", action="keep_both")
        _upload(svc, blob_store, "a.txt", action="replace")

        names = [f.original_name for f in svc.list_files(owner_id="u1")]
        assert sorted(names) == ["a (1).txt", "a (2).txt", "a.txt"]


class TestBatchUpload:

    def _item(self, blob_store, name, folder, content=b"abc"):
        ext = "." + name.rsplit(".", 1)[1]
        return BatchItem(
            storage_path=write_blob(blob_store, folder, content, ext),
            original_name=name,
            folder=folder,
            mime_type="text/plain",
        )

    def test_all_succeed(self, svc, blob_store, db):
        items = [
            self._item(blob_store, "a.txt", "up/photos"),
            self._item(blob_store, "b.txt", "up/photos/2024", content=b"12345"),
        ]
        result = svc.upload_batch(items, owner_id="u1")
        assert (result.total_count, result.success_count, result.failure_count) == (2, 2, 0)
        assert all(r.message == "Uploaded" for r in result.results)
        assert _folder_size(db, "up") == 8
        assert _folder_size(db, "up/photos/2024") == 5

    def test_active_conflict_rejects_whole_batch(self, svc, blob_store, db):
        _upload(svc, blob_store, "a.txt")
        items = [self._item(blob_store, "a.txt", "docs"), self._item(blob_store, "b.txt", "docs")]

        with pytest.raises(BatchConflictError) as exc_info:
            svc.upload_batch(items)

        details = exc_info.value.details
        assert details["type"] == "active"
        assert details["total_files"] == 2
        assert [c["original_name"] for c in details["conflicts"]] == ["a.txt"]
        assert not any(blob_store.exists(i.storage_path) for i in items)
        assert _rows(db) == 1

    def test_trashed_conflict_rejects_whole_batch(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(first.file.id)
        items = [self._item(blob_store, "a.txt", "docs")]

        with pytest.raises(BatchConflictError) as exc_info:
            svc.upload_batch(items, action=None)
        assert exc_info.value.details["type"] == "trashed"
        assert exc_info.value.details["trashed_conflicts"] == ["a.txt"]

    def test_with_action_failures_are_per_item(self, svc, blob_store, db):
        first, _ = _upload(svc, blob_store, "trashed.txt")
        svc.soft_delete(first.file.id)
        _upload(svc, blob_store, "dup.txt")
        items = [
            self._item(blob_store, "dup.txt", "docs"),
            self._item(blob_store, "trashed.txt", "docs"),
        ]

        result = svc.upload_batch(items, action="keep_both")

        assert (result.success_count, result.failure_count) == (1, 1)
        ok, failed = result.results
        assert ok.message == "Renamed"
        assert ok.original_name == "dup (1).txt"
        assert failed.message == "Upload failed"
        assert "exists in Trash" in failed.error
        assert not blob_store.exists(items[1].storage_path)


class TestMove:

    def test_replace_supersedes_destination_row(self, svc, blob_store, db):
        FolderRepository(db).get_or_create("archive")
        mover, mover_path = _upload(svc, blob_store, "a.txt", content=b"mover")
        target, target_path = _upload(svc, blob_store, "a.txt", folder="archive", content=b"t")
        mover_id, mover_stored_name = mover.file.id, mover.file.stored_name
        target_id = target.file.id

        moved = svc.move(mover_id, "archive", action="replace")

        assert moved.id == target_id
        assert moved.size == 5
        assert moved.stored_name == mover_stored_name
        assert blob_store.exists(moved.storage_path)
        assert not blob_store.exists(mover_path)
        assert not blob_store.exists(target_path)
        assert FileRepository(db).get_by_id_optional(mover_id) is None

    def test_conflict_without_action(self, svc, blob_store, db):
        FolderRepository(db).get_or_create("archive")
        mover, mover_path = _upload(svc, blob_store, "a.txt")
        _upload(svc, blob_store, "a.txt", folder="archive")
        with pytest.raises(ActiveConflictError):
            svc.move(mover.file.id, "archive")
        assert blob_store.exists(mover_path)

    def test_keep_both(self, svc, blob_store, db):
        FolderRepository(db).get_or_create("archive")
        mover, _ = _upload(svc, blob_store, "a.txt")
        _upload(svc, blob_store, "a.txt", folder="archive")
        moved = svc.move(mover.file.id, "archive", action="keep_both")
        assert moved.original_name == "a (1).txt"
        assert moved.folder == "archive"

    def test_same_folder_is_noop(self, svc, blob_store):
        result, path = _upload(svc, blob_store, "a.txt")
        assert svc.move(result.file.id, "docs").storage_path == path

    def test_to_root(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        moved = svc.move(result.file.id, "")
        assert moved.storage_path == moved.stored_name

    def test_missing_destination_row(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        with pytest.raises(ValidationError):
            svc.move(result.file.id, "nowhere")

    def test_other_owners_file_looks_missing(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt", owner_id="u1")
        with pytest.raises(FileRecordNotFoundError):
            svc.move(result.file.id, "", requester_id="u2")

    def test_other_owners_folder_looks_missing(self, svc, blob_store, db):
        FolderRepository(db).get_or_create("private", owner_id="u2")
        result, _ = _upload(svc, blob_store, "a.txt", owner_id="u1")
        with pytest.raises(FolderNotFoundError):
            svc.move(result.file.id, "private", requester_id="u1")

    def test_trashed_file_cannot_move(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(result.file.id)
        with pytest.raises(ValidationError):
            svc.move(result.file.id, "")

    def test_catalog_failure_moves_blob_back(self, svc, blob_store, db, monkeypatch):
        FolderRepository(db).get_or_create("archive")
        result, path = _upload(svc, blob_store, "a.txt")

        def _fail(*args, **kwargs):
            raise CatalogError("update failed")

        monkeypatch.setattr(svc.file_repo, "update", _fail)
        with pytest.raises(CatalogError):
            svc.move(result.file.id, "archive")

        assert blob_store.exists(path)
        assert blob_store.list_directory("archive") == []
        db.expire_all()
        assert FileRepository(db).get_by_id(result.file.id).storage_path == path


class TestMetadata:

    def test_rename_and_metadata(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        updated = svc.update_metadata(
            result.file.id, original_name="b.txt", is_public=True, metadata={"tag": "x"}
        )
        assert updated.original_name == "b.txt"
        assert updated.is_public is True
        assert updated.metadata_json == '{"tag": "x"}'

    def test_rename_into_taken_name(self, svc, blob_store):
        _upload(svc, blob_store, "a.txt")
        other, _ = _upload(svc, blob_store, "b.txt")
        with pytest.raises(ActiveConflictError):
            svc.update_metadata(other.file.id, original_name="a.txt")

    @pytest.mark.parametrize("name", ["", "  ", "a/b.txt", "a\\b.txt"])
    def test_invalid_names(self, svc, blob_store, name):
        result, _ = _upload(svc, blob_store, "a.txt")
        with pytest.raises(ValidationError):
            svc.update_metadata(result.file.id, original_name=name)


class TestTrashLifecycle:

    def test_soft_delete_keeps_blob_and_size(self, svc, blob_store, db):
        result, path = _upload(svc, blob_store, "a.txt")
        deleted = svc.soft_delete(result.file.id)
        assert deleted.status == FileStatus.DELETED.value
        assert blob_store.exists(path)
        assert _folder_size(db, "docs") == 500
        assert svc.list_files(status="deleted")[0].id == result.file.id
        assert svc.list_files(status="active") == []

    def test_soft_delete_twice_is_noop(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(result.file.id)
        assert svc.soft_delete(result.file.id).status == FileStatus.DELETED.value

    def test_soft_delete_blocked_by_trashed_namesake(self, svc, blob_store, db):
        result, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(result.file.id)
        twin = FileRepository(db).create(
            original_name="a.txt", stored_name="twin.txt", storage_path="docs/twin.txt", size=1
        )
        with pytest.raises(TrashedConflictError):
            svc.soft_delete(twin.id)

    def test_restore(self, svc, blob_store):
        result, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(result.file.id)
        assert svc.restore(result.file.id).status == FileStatus.ACTIVE.value

    def test_restore_blocked_by_active_namesake(self, svc, blob_store, db):
        result, _ = _upload(svc, blob_store, "a.txt")
        svc.soft_delete(result.file.id)
        twin = FileRepository(db).create(
            original_name="a.txt", stored_name="twin.txt", storage_path="docs/twin.txt", size=1
        )
        with pytest.raises(ActiveConflictError) as exc_info:
            svc.restore(result.file.id)
        assert exc_info.value.existing_id == twin.id

    def test_invalid_status_filter(self, svc):
        with pytest.raises(ValidationError):
            svc.list_files(status="archived")


class TestPermanentDelete:

    def test_removes_blob_and_row(self, svc, blob_store, db):
        result, path = _upload(svc, blob_store, "a.txt")
        assert svc.permanent_delete(result.file.id) == {"id": result.file.id}
        assert not blob_store.exists(path)
        assert _rows(db) == 0
        assert _folder_size(db, "docs") == 0

    def test_storage_failure_keeps_row(self, svc, blob_store, db, monkeypatch):
        result, path = _upload(svc, blob_store, "a.txt")

        def _fail(storage_path):
            raise StorageError("disk unavailable")

        monkeypatch.setattr(blob_store, "delete", _fail)
        with pytest.raises(StorageError):
            svc.permanent_delete(result.file.id)
        assert FileRepository(db).get_by_id(result.file.id) is not None

    def test_missing_blob_fails_and_keeps_row(self, svc, blob_store, db):
        result, path = _upload(svc, blob_store, "a.txt")
        blob_store.delete(path)

        with pytest.raises(BlobNotFoundError):
            svc.permanent_delete(result.file.id)

        assert _rows(db) == 1
        assert FileRepository(db).get_by_id(result.file.id).storage_path == path

    def test_unknown_id(self, svc):
        with pytest.raises(FileRecordNotFoundError):
            svc.permanent_delete("nope")


class TestDownload:

    def test_streams_content_and_counts_access(self, svc, blob_store, db):
        result, _ = _upload(svc, blob_store, "a.txt", content=b"hello world")
        record, chunks = svc.open_download(result.file.id, chunk_size=4)
        assert b"".join(chunks) == b"hello world"
        db.expire_all()
        refreshed = svc.get_file(result.file.id)
        assert refreshed.access_count == 1
        assert refreshed.last_accessed is not None
