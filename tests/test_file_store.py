"""Tests for sandboxed project file access."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from safe_modify.core.file_store import FileStore
from safe_modify.errors import (
    ErrorKind,
    FileNotInProjectError,
    FileWriteError,
    OutsideProjectError,
)


class TestFileStore:
    """Test FileStore path containment and I/O."""

    @pytest.fixture
    def project(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir) / "project"
            root.mkdir()
            (root / "src").mkdir()
            (root / "src" / "app.js").write_text("const a = 1;\n")
            yield root

    @pytest.fixture
    def store(self, project):
        return FileStore(project)

    def test_read_relative_and_absolute(self, store, project):
        assert store.read("src/app.js") == "const a = 1;\n"
        assert store.read(project / "src" / "app.js") == "const a = 1;\n"

    def test_read_preserves_line_endings(self, store, project):
        (project / "crlf.js").write_bytes(b"a();\r\nb();\r\n")
        assert store.read("crlf.js") == "a();\r\nb();\r\n"

    def test_read_missing_file(self, store):
        with pytest.raises(FileNotInProjectError) as exc_info:
            store.read("src/missing.js")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_paths_outside_project_are_rejected(self, store, project):
        outside = project.parent / "secret.txt"
        outside.write_text("secret")

        with pytest.raises(OutsideProjectError):
            store.read("../secret.txt")
        with pytest.raises(OutsideProjectError):
            store.read(outside)
        with pytest.raises(OutsideProjectError) as exc_info:
            store.write("../escape.txt", "nope")

        assert exc_info.value.kind == ErrorKind.OUTSIDE_PROJECT
        assert not (project.parent / "escape.txt").exists()
        assert store.is_within_project("src/app.js")
        assert not store.is_within_project("../secret.txt")

    def test_write_creates_parent_directories(self, store, project):
        written = store.write("src/nested/deep/file.ts", "export const x = 1;\n")

        assert written == (project / "src" / "nested" / "deep" / "file.ts").resolve()
        assert written.read_text() == "export const x = 1;\n"

    def test_write_failure_raises_file_write_error(self, store):
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            with pytest.raises(FileWriteError) as exc_info:
                store.write("src/app.js", "x")
        assert exc_info.value.kind == ErrorKind.IO_ERROR

    def test_relative_path_is_posix_and_canonical(self, store, project):
        assert store.relative_path("src/../src/app.js") == "src/app.js"
        assert store.relative_path(project / "src" / "app.js") == "src/app.js"

    def test_delete_is_idempotent(self, store, project):
        store.delete("src/app.js")
        store.delete("src/app.js")
        assert not (project / "src" / "app.js").exists()

    def test_copy_and_file_info(self, store, project):
        store.copy("src/app.js", "src/copy.js")
        info = store.file_info("src/copy.js")

        assert (project / "src" / "copy.js").read_text() == "const a = 1;\n"
        assert info["relative_path"] == "src/copy.js"
        assert info["extension"] == ".js"
        assert info["size"] == len("const a = 1;\n")
        assert store.file_info("src/none.js") is None

    def test_list_files_skips_excluded_directories(self, store, project):
        (project / "node_modules" / "lib").mkdir(parents=True)
        (project / "node_modules" / "lib" / "index.js").write_text("")
        (project / ".hidden").mkdir()
        (project / ".hidden" / "x.js").write_text("")
        (project / "src" / "style.css").write_text("")
        (project / "README.md").write_text("")

        assert store.list_files() == ["README.md"]
        assert store.list_files(recursive=True, extensions=[".js"]) == ["src/app.js"]
        assert "src/style.css" in store.list_files("src", recursive=True)
