"""Tests for the lazily loaded directory tree."""
import uuid

import pytest

from s3box.core.directory import Content, Directory, File, build_loaded_directory
from s3box.core.directory_events import (
    ContentUploadedFailureEvent,
    ContentUploadedSuccessEvent,
    CreatedSuccessEvent,
    DeletedSuccessEvent,
    FileDeletedSuccessEvent,
    LoadFailureEvent,
    LoadSuccessEvent,
)
from s3box.core.directory_state import DirectoryState
from s3box.shared.errors import (
    AlreadyExistsError,
    InvalidStateError,
    NotFoundError,
    NotLoadedError,
    TechnicalError,
    ValidationError,
)
from s3box.shared.paths import ROOT_PATH

CONN_ID = uuid.uuid4()


def _loaded_root(sub_dirs=(), files=()):
    root = Directory.new_root(CONN_ID)
    subs = [Directory(CONN_ID, name, ROOT_PATH) for name in sub_dirs]
    fs = [File(name, ROOT_PATH, size_bytes=3) for name in files]
    root.load()
    root.set_loaded(True, subs, fs)
    return root


class TestConstruction:
    def test_root(self):
        root = Directory.new_root(CONN_ID)
        assert root.path == "/"
        assert root.is_root
        assert root.parent_path == ""
        assert root.state == DirectoryState.NOT_LOADED

    def test_child_path(self):
        d = Directory(CONN_ID, "b", "/a/")
        assert d.path == "/a/b/"
        assert d.parent_path == "/a/"

    @pytest.mark.parametrize("name,parent", [("", "/a/"), ("a/b", "/"), ("a", "")])
    def test_invalid(self, name, parent):
        with pytest.raises(ValidationError):
            Directory(CONN_ID, name, parent)

    def test_file_full_path(self):
        f = File("notes.txt", "/docs")
        assert f.directory_path == "/docs/"
        assert f.full_path == "/docs/notes.txt"

    def test_file_name_with_slash_rejected(self):
        with pytest.raises(ValidationError):
            File("a/b.txt", "/")


class TestLifecycle:
    def test_children_require_loading(self):
        root = Directory.new_root(CONN_ID)
        with pytest.raises(NotLoadedError):
            root.files()
        root.load()
        with pytest.raises(NotLoadedError):
            root.sub_directories()

    def test_load_twice_rejected(self):
        root = Directory.new_root(CONN_ID)
        root.load()
        with pytest.raises(InvalidStateError):
            root.load()

    def test_set_loaded_replaces_children(self):
        root = _loaded_root(sub_dirs=["a"], files=["x.txt"])
        assert [d.name for d in root.sub_directories()] == ["a"]
        assert [f.name for f in root.files()] == ["x.txt"]

    def test_set_loaded_outside_loading_rejected(self):
        root = _loaded_root()
        with pytest.raises(InvalidStateError):
            root.set_loaded(True, [], [])

    def test_failed_load_reverts(self):
        root = Directory.new_root(CONN_ID)
        root.load()
        root.set_loaded(False)
        assert root.state == DirectoryState.NOT_LOADED
        root.load()

    def test_open_close(self):
        root = _loaded_root()
        root.open()
        root.open()
        assert root.is_opened and root.is_loaded
        root.close()
        root.close()
        assert root.state == DirectoryState.LOADED

    def test_open_before_load_rejected(self):
        with pytest.raises(InvalidStateError):
            Directory.new_root(CONN_ID).open()

    def test_build_loaded_directory(self):
        d = build_loaded_directory(CONN_ID, "/a/b", [], [File("f", "/a/b/")])
        assert d.path == "/a/b/"
        assert d.is_loaded
        assert d.get_file("f").full_path == "/a/b/f"


class TestChildren:
    def test_lookup(self):
        root = _loaded_root(sub_dirs=["a"], files=["x.txt"])
        assert root.get_sub_directory("a").path == "/a/"
        assert root.get_file("x.txt").size_bytes == 3
        with pytest.raises(NotFoundError):
            root.get_file("missing")
        with pytest.raises(NotFoundError):
            root.get_sub_directory("missing")

    def test_new_sub_directory_is_not_attached_until_success(self):
        root = _loaded_root()
        evt = root.new_sub_directory("mydir")
        assert evt.directory.path == "/mydir/"
        assert root.sub_directories() == []
        assert root.notify(CreatedSuccessEvent(root, evt.directory))
        assert [d.path for d in root.sub_directories()] == ["/mydir/"]

    def test_new_sub_directory_duplicate_rejected(self):
        root = _loaded_root(sub_dirs=["a"])
        with pytest.raises(AlreadyExistsError):
            root.new_sub_directory("a")

    def test_new_file(self):
        root = _loaded_root(files=["x.txt"])
        with pytest.raises(AlreadyExistsError):
            root.new_file("x.txt")
        replaced = root.new_file("x.txt", overwrite=True, size_bytes=10)
        assert root.get_file("x.txt") is replaced
        assert len(root.files()) == 1

    def test_remove_file_event(self):
        root = _loaded_root(files=["x.txt"])
        evt = root.remove_file("x.txt")
        assert evt.file.name == "x.txt"
        assert root.notify(FileDeletedSuccessEvent(root, evt.file))
        assert root.files() == []

    def test_remove_sub_directory_event(self):
        root = _loaded_root(sub_dirs=["a", "b"])
        evt = root.remove_sub_directory("a")
        assert evt.path == "/a/"
        root.notify(DeletedSuccessEvent(root, evt.path))
        assert [d.name for d in root.sub_directories()] == ["b"]


class TestUpload:
    def test_upload_adds_file_speculatively(self, local_file):
        root = _loaded_root()
        evt = root.upload_file(str(local_file))
        assert evt.content.file.name == "report.txt"
        assert evt.content.file.size_bytes == len(b"local content")
        assert root.get_file("report.txt") is evt.content.file

    def test_upload_failure_removes_file(self, local_file):
        root = _loaded_root()
        evt = root.upload_file(str(local_file))
        root.notify(ContentUploadedFailureEvent(root, evt.content, error=TechnicalError("x")))
        assert root.files() == []

    def test_upload_success_keeps_file(self, local_file):
        root = _loaded_root()
        evt = root.upload_file(str(local_file))
        root.notify(ContentUploadedSuccessEvent(root, evt.content))
        assert [f.name for f in root.files()] == ["report.txt"]

    def test_upload_missing_local_file(self, tmp_path):
        root = _loaded_root()
        with pytest.raises(TechnicalError):
            root.upload_file(str(tmp_path / "nope.bin"))

    def test_upload_requires_loaded(self, local_file):
        with pytest.raises(NotLoadedError):
            Directory.new_root(CONN_ID).upload_file(str(local_file))


class TestNotify:
    def test_load_success(self):
        root = Directory.new_root(CONN_ID)
        root.load()
        sub = Directory(CONN_ID, "a", "/")
        assert root.notify(LoadSuccessEvent(root, [sub], []))
        assert root.sub_directories() == [sub]

    def test_load_failure(self):
        root = Directory.new_root(CONN_ID)
        root.load()
        assert root.notify(LoadFailureEvent(root, error=TechnicalError("x")))
        assert root.state == DirectoryState.NOT_LOADED

    def test_ignores_other_directories(self):
        root = _loaded_root()
        other = Directory(CONN_ID, "a", "/")
        assert root.notify(DeletedSuccessEvent(other, "/a/b/")) is False


class TestContent:
    def test_local_file_opened_once(self, local_file):
        content = Content(File("report.txt", "/"), local_path=str(local_file))
        with content.open() as fh:
            assert fh.read() == b"local content"
        with pytest.raises(TechnicalError):
            content.open()

    def test_missing_backing(self):
        with pytest.raises(TechnicalError):
            Content(File("a", "/")).open()
