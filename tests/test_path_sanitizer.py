"""Tests for folder path sanitization and secure path resolution."""

import os

import pytest

from moxbox.core.path_sanitizer import (
    MAX_PATH_DEPTH,
    MAX_PATH_LENGTH,
    join_storage_path,
    parent_folder,
    resolve_secure_path,
    sanitize_folder_path,
)
from moxbox.exceptions import InvalidPathError


class TestSanitizeFolderPath:

    @pytest.mark.parametrize("raw", [None, "", "/", "\\", "   "])
    def test_root_inputs_return_empty(self, raw):
        assert sanitize_folder_path(raw) == ""

    def test_strips_surrounding_slashes(self):
        assert sanitize_folder_path("/docs/reports/") == "docs/reports"

    def test_backslashes_become_forward_slashes(self):
        assert sanitize_folder_path("docs\\reports\\2024") == "docs/reports/2024"

    def test_empty_segments_dropped(self):
        assert sanitize_folder_path("docs//reports") == "docs/reports"

    def test_allows_spaces_hyphens_underscores(self):
        assert sanitize_folder_path("My Files/tax-2024/q_1") == "My Files/tax-2024/q_1"

    @pytest.mark.parametrize("raw", ["../etc/passwd", "a/../../b", "docs/..", "..", "a..b"])
    def test_rejects_traversal(self, raw):
        with pytest.raises(InvalidPathError):
            sanitize_folder_path(raw)

    @pytest.mark.parametrize("raw", ["docs/re*ports", "docs/<script>", "a/b.c", "café"])
    def test_rejects_invalid_characters(self, raw):
        with pytest.raises(InvalidPathError):
            sanitize_folder_path(raw)

    def test_rejects_too_long(self):
        with pytest.raises(InvalidPathError, match="maximum length"):
            sanitize_folder_path("a" * (MAX_PATH_LENGTH + 1))

    def test_accepts_max_depth(self):
        path = "/".join(["d"] * MAX_PATH_DEPTH)
        assert sanitize_folder_path(path) == path

    def test_rejects_too_deep(self):
        with pytest.raises(InvalidPathError, match="maximum depth"):
            sanitize_folder_path("/".join(["d"] * (MAX_PATH_DEPTH + 1)))

    def test_error_carries_raw_path(self):
        with pytest.raises(InvalidPathError) as exc_info:
            sanitize_folder_path("../x")
        assert exc_info.value.details["path"] == "../x"
        assert exc_info.value.status_code == 400


class TestResolveSecurePath:

    def test_resolves_inside_root(self, tmp_path):
        resolved = resolve_secure_path(str(tmp_path), "docs/a.txt")
        assert resolved == os.path.join(str(tmp_path), "docs", "a.txt")

    def test_empty_relative_is_root(self, tmp_path):
        assert resolve_secure_path(str(tmp_path), "") == str(tmp_path)

    def test_rejects_escape(self, tmp_path):
        with pytest.raises(InvalidPathError):
            resolve_secure_path(str(tmp_path), "../outside.txt")

    def test_rejects_absolute_path(self, tmp_path):
        with pytest.raises(InvalidPathError):
            resolve_secure_path(str(tmp_path), "/etc/passwd")


class TestStoragePathHelpers:

    def test_parent_folder(self):
        assert parent_folder("docs/reports/a.pdf") == "docs/reports"
        assert parent_folder("a.pdf") == ""

    def test_join_storage_path(self):
        assert join_storage_path("docs", "a.pdf") == "docs/a.pdf"
        assert join_storage_path("", "a.pdf") == "a.pdf"
