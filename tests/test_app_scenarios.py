"""End-to-end flows through the wired application context."""
import uuid
from queue import Empty, Queue

import pytest

from s3box.app.main import AppContext
from s3box.core.directory import Directory, File
from s3box.shared.errors import (
    EditorAlreadyOpenedError,
    FileTooLargeError,
    NoConnectionSelectedError,
)
from s3box.shared.models import MEGA, Level


@pytest.fixture
def app(fake_s3, preferences):
    context = AppContext(
        preferences=preferences,
        client_factory=lambda conn: fake_s3,
        notification_level=Level.DEBUG,
        workers=4,
    )
    yield context
    context.shutdown()


def _connect(app, wait_until, name="test", **options):
    """Create a connection on bucket b1, select it and wait for the root listing."""
    conn = app.connection_vm.create(name, "ak", "sk", "b1", s3_like_server="localhost:9000", **options)
    app.connection_vm.select(conn.id)

    def ready():
        root = app.explorer_vm.root()
        editor_conn = app.editor_vm.connection
        return (
            root is not None
            and root.connection_id == conn.id
            and root.is_loaded
            and editor_conn is not None
            and editor_conn.id == conn.id
        )

    assert wait_until(ready)
    return conn


def _child_ids(app, node_id):
    return app.explorer_vm.tree.child_ids(node_id)


def _drain(channel):
    items = []
    while True:
        try:
            items.append(channel.get_nowait())
        except Empty:
            return items


class TestExplorer:
    def test_no_connection_shows_banner(self, app):
        assert app.explorer_vm.display_no_connection_banner.get() is True
        assert app.explorer_vm.root() is None
        with pytest.raises(NoConnectionSelectedError):
            app.explorer_vm.load_directory(Directory.new_root(uuid.uuid4()))

    def test_empty_bucket_on_aws(self, app, fake_s3, wait_until):
        conn = app.connection_vm.create("conn1", "ak", "sk", "b1", aws_region="us-east-1")
        app.connection_vm.select(conn.id)

        assert wait_until(lambda: app.explorer_vm.root() is not None and app.explorer_vm.root().is_loaded)
        root = app.explorer_vm.root()
        assert root.files() == [] and root.sub_directories() == []
        assert fake_s3.list_calls == [{"Bucket": "b1", "Prefix": "", "Delimiter": "/"}]

    def test_select_lists_bucket_root_once(self, app, fake_s3, wait_until):
        fake_s3.seed("b1", "root_file.txt", b"hello")
        fake_s3.seed("b1", "mydir/file_in_dir.txt", b"x")

        _connect(app, wait_until)

        assert fake_s3.list_calls == [{"Bucket": "b1", "Prefix": "", "Delimiter": "/"}]
        assert wait_until(lambda: _child_ids(app, "/") == ["/mydir/", "/root_file.txt"])
        (root_node,) = app.explorer_vm.tree.roots()
        assert root_node.display_name == "Bucket: b1"
        assert app.explorer_vm.display_no_connection_banner.get() is False

    def test_open_nested_directory(self, app, fake_s3, wait_until):
        fake_s3.seed("b1", "mydir/file_in_dir.txt", b"x")
        _connect(app, wait_until)
        mydir = app.explorer_vm.root().get_sub_directory("mydir")
        assert wait_until(lambda: app.explorer_vm.get_directory("/mydir/") is mydir)

        app.explorer_vm.open_directory(mydir)

        assert wait_until(lambda: _child_ids(app, "/mydir/") == ["/mydir/file_in_dir.txt"])
        assert mydir.is_opened
        assert fake_s3.list_calls[-1] == {"Bucket": "b1", "Prefix": "mydir/", "Delimiter": "/"}

        app.explorer_vm.close_directory(mydir)
        assert mydir.is_loaded and not mydir.is_opened

    def test_create_and_delete_directory(self, app, fake_s3, wait_until):
        _connect(app, wait_until)
        root = app.explorer_vm.root()

        created = app.explorer_vm.create_empty_directory(root, "new")
        assert created.path == "/new/"
        assert wait_until(lambda: "/new/" in app.explorer_vm.tree)
        assert fake_s3.body("b1", "new/") == b""

        assert app.explorer_vm.delete_directory(root, "new") is True
        assert wait_until(lambda: "/new/" not in app.explorer_vm.tree)
        assert ("b1", "new/") not in fake_s3.objects

    def test_upload_download_delete_file(self, app, fake_s3, wait_until, local_file, tmp_path):
        _connect(app, wait_until)
        root = app.explorer_vm.root()

        uploaded = app.explorer_vm.upload_file(str(local_file), root)
        assert uploaded.full_path == "/report.txt"
        assert wait_until(lambda: fake_s3.objects.get(("b1", "report.txt")) == b"local content")
        assert wait_until(lambda: "/report.txt" in app.explorer_vm.tree)
        assert app.explorer_vm.last_upload_location.get() == tmp_path.resolve().as_uri()

        target = tmp_path / "downloads" / "copy.txt"
        target.parent.mkdir()
        app.explorer_vm.download_file(uploaded, str(target))
        assert wait_until(lambda: target.exists() and target.read_bytes() == b"local content")
        assert app.explorer_vm.last_download_location.get() == target.parent.resolve().as_uri()

        assert app.explorer_vm.delete_file(uploaded) is True
        assert wait_until(lambda: "/report.txt" not in app.explorer_vm.tree)
        assert ("b1", "report.txt") not in fake_s3.objects

    def test_failed_upload_removes_node(self, app, fake_s3, wait_until, local_file):
        _connect(app, wait_until)
        root = app.explorer_vm.root()
        fake_s3.fail_next["upload_fileobj"] = "AccessDenied"

        app.explorer_vm.upload_file(str(local_file), root)

        assert wait_until(lambda: root.files() == [])
        assert "/report.txt" not in app.explorer_vm.tree
        assert wait_until(lambda: any(
            line.startswith("Error: [TECHNICAL]") for line in app.notification_vm.notifications.get()))

    def test_refresh_reloads(self, app, fake_s3, wait_until):
        _connect(app, wait_until)
        fake_s3.seed("b1", "late.txt", b"x")

        fresh = app.explorer_vm.refresh_directory(app.explorer_vm.root())

        assert wait_until(lambda: fresh.is_loaded and _child_ids(app, "/") == ["/late.txt"])
        assert app.explorer_vm.root() is fresh
        assert len(fake_s3.list_calls) == 2

    def test_read_only_connection_refuses_mutations(self, app, fake_s3, wait_until, local_file, tmp_path):
        fake_s3.seed("b1", "a.txt", b"x")
        _connect(app, wait_until, read_only=True)
        assert app.connection_vm.is_read_only()
        channel = Queue()
        app.notifier.subscribe(channel)
        root = app.explorer_vm.root()
        before = dict(fake_s3.objects)

        assert app.explorer_vm.create_empty_directory(root, "new") is None
        assert app.explorer_vm.upload_file(str(local_file), root) is None
        assert app.explorer_vm.delete_file(root.get_file("a.txt")) is False

        notifications = _drain(channel)
        assert len(notifications) == 3
        assert all(n.level == Level.INFO and "read-only" in n.message for n in notifications)
        assert fake_s3.objects == before

        target = tmp_path / "a.txt"
        app.explorer_vm.download_file(root.get_file("a.txt"), str(target))
        assert wait_until(lambda: target.exists() and target.read_bytes() == b"x")

    def test_update_of_selected_connection_resets_tree(self, app, fake_s3, wait_until):
        conn = _connect(app, wait_until)
        first_root = app.explorer_vm.root()

        fake_s3.buckets.add("b2")
        app.connection_vm.update(conn.id, bucket="b2")

        assert wait_until(lambda: app.explorer_vm.root() is not first_root)
        assert wait_until(lambda: fake_s3.list_calls[-1]["Bucket"] == "b2")

    def test_removing_selected_connection_hides_explorer(self, app, wait_until):
        conn = _connect(app, wait_until)
        app.connection_vm.delete(conn.id)
        assert wait_until(lambda: app.explorer_vm.display_no_connection_banner.get() is True)
        assert app.explorer_vm.root() is None


class TestEditor:
    def test_open_edit_save(self, app, fake_s3, wait_until):
        fake_s3.seed("b1", "root_file.txt", b"hello")
        _connect(app, wait_until)
        file = app.explorer_vm.root().get_file("root_file.txt")

        editor = app.editor_vm.open(file)
        assert wait_until(lambda: editor.is_loaded.get())
        assert editor.error_msg.get() == ""
        assert editor.content.get() == "hello"

        assert editor.on_save("hello world") == 11
        assert fake_s3.body("b1", "root_file.txt") == b"hello world"
        assert editor.on_save("bye") == 3
        assert fake_s3.body("b1", "root_file.txt") == b"bye"

        with pytest.raises(EditorAlreadyOpenedError):
            app.editor_vm.open(file)

        stream = editor.stream
        app.editor_vm.close(editor)
        assert not app.editor_vm.is_opened(file)
        assert stream.closed

        reopened = app.editor_vm.open(file)
        assert wait_until(lambda: reopened.is_loaded.get())
        assert reopened.content.get() == "bye"

    def test_new_object_starts_empty(self, app, fake_s3, wait_until):
        _connect(app, wait_until)
        editor = app.editor_vm.open(File("draft.txt", "/"))
        assert wait_until(lambda: editor.is_loaded.get())
        assert editor.content.get() == ""
        editor.on_save("first line")
        assert fake_s3.body("b1", "draft.txt") == b"first line"

    def test_load_failure_sets_error(self, app, fake_s3, wait_until):
        _connect(app, wait_until)
        fake_s3.fail_next["download_fileobj"] = "AccessDenied"
        editor = app.editor_vm.open(File("secret.txt", "/"))
        assert wait_until(lambda: editor.is_loaded.get())
        assert "TECHNICAL" in editor.error_msg.get()
        assert editor.stream is None

    def test_requires_selection(self, app):
        with pytest.raises(NoConnectionSelectedError):
            app.editor_vm.open(File("a.txt", "/"))

    def test_preview_size_limit(self, app, wait_until):
        _connect(app, wait_until)
        with pytest.raises(FileTooLargeError):
            app.editor_vm.open(File("big.bin", "/", size_bytes=2 * MEGA))
        assert app.editor_vm.opened_editors() == []

    def test_selecting_another_connection_closes_editors(self, app, fake_s3, wait_until):
        fake_s3.seed("b1", "root_file.txt", b"hello")
        _connect(app, wait_until, name="first")
        editor = app.editor_vm.open(app.explorer_vm.root().get_file("root_file.txt"))
        assert wait_until(lambda: editor.stream is not None)
        stream = editor.stream

        _connect(app, wait_until, name="second")

        assert wait_until(lambda: app.editor_vm.opened_editors() == [])
        assert stream.closed
        assert editor.stream is None

        again = app.editor_vm.open(app.explorer_vm.root().get_file("root_file.txt"))
        assert wait_until(lambda: again.is_loaded.get())
        assert again.connection_id == app.editor_vm.connection.id


def test_shutdown_is_idempotent(app):
    app.shutdown()
    app.shutdown()
    assert app.bus.done.is_set()
