"""Bucket explorer view-model."""
import logging
from pathlib import Path
from threading import RLock
from typing import Optional

from s3box.core.deck import (
    REMOVE_EVENT,
    SELECT_EVENT,
    UPDATE_EVENT,
    Connection,
    RemoveSuccessEvent,
    SelectSuccessEvent,
    UpdateSuccessEvent,
)
from s3box.core.directory import Directory, File
from s3box.core.directory_events import (
    CONTENT_DOWNLOADED_EVENT,
    CONTENT_UPLOADED_EVENT,
    CREATED_EVENT,
    DELETED_EVENT,
    FILE_DELETED_EVENT,
    LOAD_EVENT,
    ContentDownloadedSuccessEvent,
    ContentUploadedFailureEvent,
    ContentUploadedSuccessEvent,
    CreatedSuccessEvent,
    DeletedSuccessEvent,
    FileDeletedSuccessEvent,
    LoadFailureEvent,
    LoadSuccessEvent,
)
from s3box.core.events import Event, EventBus, is_
from s3box.shared.errors import NoConnectionSelectedError, NotFoundError, ReadOnlyError, S3BoxError
from s3box.shared.paths import ROOT_PATH, RemotePath
from s3box.ui.bindings import ObservableTree, ObservableValue
from s3box.ui.viewmodels.tree_node import Node

logger = logging.getLogger(__name__)


def location_uri(local_path: str) -> str:
    """URI of the directory holding *local_path*."""
    return Path(local_path).expanduser().resolve().parent.as_uri()


class ExplorerViewModel:
    """
    Tree of the selected connection's bucket.

    Directories are loaded lazily: the first interaction publishes the
    load request and the children are spliced into the tree when the
    repository answers. All mutating actions are refused on a read-only
    connection.
    """

    def __init__(self, bus: EventBus, notifier, logger: Optional[logging.Logger] = None):
        """
        Initialize the explorer; the tree is built on the first selection.

        Args:
            bus: Application event bus
            notifier: Notification publisher
            logger: Optional logger instance
        """
        self.bus = bus
        self.notifier = notifier
        self.logger = logger or logging.getLogger(__name__)

        self.tree = ObservableTree()
        self.display_no_connection_banner = ObservableValue(True)
        self.last_download_location = ObservableValue("")
        self.last_upload_location = ObservableValue("")

        self._lock = RLock()
        self._connection: Optional[Connection] = None
        self._directories: dict[str, Directory] = {}
        self._pending_open: set[str] = set()

        self.subscriber = (
            bus.subscribe("explorer-viewmodel")
            .on(is_(SELECT_EVENT.as_success()), self._on_select)
            .on(is_(UPDATE_EVENT.as_success()), self._on_update)
            .on(is_(REMOVE_EVENT.as_success()), self._on_remove)
            .on(is_(LOAD_EVENT.as_success()), self._on_load_success)
            .on(is_(LOAD_EVENT.as_failure()), self._on_load_failure)
            .on(is_(CREATED_EVENT.as_success()), self._on_created)
            .on(is_(DELETED_EVENT.as_success()), self._on_deleted)
            .on(is_(FILE_DELETED_EVENT.as_success()), self._on_file_deleted)
            .on(is_(CONTENT_UPLOADED_EVENT.as_success()), self._on_uploaded)
            .on(is_(CONTENT_UPLOADED_EVENT.as_failure()), self._on_upload_failure)
            .on(is_(CONTENT_DOWNLOADED_EVENT.as_success()), self._on_downloaded)
            .listen_with_workers(1)
        )

    @property
    def selected_connection(self) -> Optional[Connection]:
        with self._lock:
            return self._connection

    def root(self) -> Optional[Directory]:
        return self.get_directory(ROOT_PATH)

    def get_directory(self, path: str) -> Optional[Directory]:
        with self._lock:
            return self._directories.get(str(RemotePath.new(path)))

    # Guards

    def _require_connection(self) -> Connection:
        with self._lock:
            conn = self._connection
        if conn is None:
            raise self.notifier.notify_error(NoConnectionSelectedError())
        return conn

    def _is_writable(self, action: str) -> bool:
        conn = self._require_connection()
        if conn.read_only:
            error = ReadOnlyError(f"connection {conn.name!r} is read-only, cannot {action}")
            self.notifier.notify_info(error.message)
            return False
        return True

    def _is_tracked(self, directory: Directory) -> bool:
        with self._lock:
            return self._directories.get(str(directory.path)) is directory

    # Directory loading

    def load_directory(self, directory: Directory):
        """
        Request the children of *directory* when it was never loaded.

        A loading or loaded directory is left alone.

        Raises:
            NoConnectionSelectedError: If no connection is selected
        """
        self._require_connection()
        with self._lock:
            if directory.is_loading or directory.is_loaded:
                return
            evt = directory.load()
        self.bus.publish(evt)

    def open_directory(self, directory: Directory):
        """Expand *directory*, loading it first when needed."""
        with self._lock:
            if directory.is_loaded:
                directory.open()
                return
            self._pending_open.add(str(directory.path))
        self.load_directory(directory)

    def close_directory(self, directory: Directory):
        with self._lock:
            self._pending_open.discard(str(directory.path))
            if directory.is_opened:
                directory.close()

    def refresh_directory(self, directory: Directory) -> Directory:
        """
        Drop the cached children of *directory* and load them again.

        Returns:
            The fresh directory now shown in the tree
        """
        conn = self._require_connection()
        with self._lock:
            if directory.is_root:
                fresh = Directory.new_root(conn.id)
                parent_id = ObservableTree.ROOT_PARENT
                node = Node.root(fresh, self._root_label(conn))
            else:
                fresh = Directory(conn.id, directory.name, directory.parent_path)
                parent_id = str(directory.parent_path)
                node = Node.for_directory(fresh)
            self._forget_below(str(fresh.path))
            self._directories[str(fresh.path)] = fresh
            self._pending_open.add(str(fresh.path))
        self.tree.add(parent_id, node.id, node)
        self.tree.set_children(node.id, [])
        self.load_directory(fresh)
        return fresh

    # Mutations

    def create_empty_directory(self, parent: Directory, name: str) -> Optional[Directory]:
        """
        Create an empty sub-directory (a marker object) in *parent*.

        Returns:
            The directory being created, or None on a read-only connection

        Raises:
            NoConnectionSelectedError: If no connection is selected
            S3BoxError: If the name is invalid, taken, or *parent* is not loaded
        """
        if not self._is_writable("create a directory"):
            return None
        try:
            with self._lock:
                evt = parent.new_sub_directory(name)
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise
        self.bus.publish(evt)
        return evt.directory

    def delete_directory(self, parent: Directory, name: str) -> bool:
        """Delete the marker object of a sub-directory. False on a read-only connection."""
        if not self._is_writable("delete a directory"):
            return False
        try:
            with self._lock:
                evt = parent.remove_sub_directory(name)
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise
        self.bus.publish(evt)
        return True

    def delete_file(self, file: File) -> bool:
        """
        Delete a file and remove it from the tree once done.

        Returns:
            False on a read-only connection, nothing is published

        Raises:
            NotFoundError: If the file's directory is not in the tree
        """
        if not self._is_writable("delete a file"):
            return False
        directory = self.get_directory(file.directory_path)
        try:
            if directory is None:
                raise NotFoundError(f"directory {str(file.directory_path)!r} is not in the tree")
            with self._lock:
                evt = directory.remove_file(file.name)
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise
        self.bus.publish(evt)
        return True

    def upload_file(self, local_path: str, directory: Directory, overwrite: bool = False) -> Optional[File]:
        """
        Upload a local file into *directory*.

        Returns:
            The remote file, or None on a read-only connection

        Raises:
            S3BoxError: If the directory is not loaded, the file exists or
                the local file cannot be read
        """
        if not self._is_writable("upload a file"):
            return None
        try:
            with self._lock:
                evt = directory.upload_file(local_path, overwrite=overwrite)
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise
        self.update_last_upload_location(local_path)
        self.bus.publish(evt)
        return evt.content.file

    def download_file(self, file: File, local_path: str):
        """Download *file* to *local_path*; allowed on read-only connections."""
        conn = self._require_connection()
        evt = file.download(conn.id, local_path)
        self.update_last_download_location(local_path)
        self.bus.publish(evt)

    def update_last_download_location(self, local_path: str):
        self.last_download_location.set(location_uri(local_path))

    def update_last_upload_location(self, local_path: str):
        self.last_upload_location.set(location_uri(local_path))

    # Tree maintenance

    @staticmethod
    def _root_label(conn: Connection) -> str:
        return f"Bucket: {conn.bucket}"

    def _forget_below(self, path: str):
        for key in [k for k in self._directories if k.startswith(path)]:
            del self._directories[key]
        self._pending_open = {p for p in self._pending_open if not p.startswith(path)}

    def _fill_sub_tree(self, directory: Directory):
        children = []
        with self._lock:
            for sub in directory.sub_directories():
                self._directories[str(sub.path)] = sub
                children.append((str(sub.path), Node.for_directory(sub)))
            for file in directory.files():
                children.append((file.full_path, Node.for_file(file)))
        self.tree.set_children(str(directory.path), children)

    def _reset(self, conn: Optional[Connection]):
        with self._lock:
            self._connection = conn.copy() if conn is not None else None
            self._directories.clear()
            self._pending_open.clear()
        self.tree.clear()

        if conn is None:
            self.display_no_connection_banner.set(True)
            self.logger.info("No connection selected, explorer hidden")
            return

        self.display_no_connection_banner.set(False)
        root = Directory.new_root(conn.id)
        node = Node.root(root, self._root_label(conn))
        with self._lock:
            self._directories[str(root.path)] = root
            self._pending_open.add(str(root.path))
        self.tree.add(ObservableTree.ROOT_PARENT, node.id, node)
        self.logger.info(f"Explorer reset on {conn.name!r} ({conn.bucket})")
        self.load_directory(root)

    # Bus handlers

    def _on_select(self, evt: SelectSuccessEvent):
        with self._lock:
            current = self._connection
        conn = evt.connection
        if current is not None and conn is not None and current.is_same(conn):
            return
        self._reset(conn)

    def _on_update(self, evt: UpdateSuccessEvent):
        with self._lock:
            current = self._connection
        if current is None or current.id != evt.connection.id or current.is_same(evt.connection):
            return
        self._reset(evt.connection)

    def _on_remove(self, evt: RemoveSuccessEvent):
        with self._lock:
            current = self._connection
        if current is not None and current.id == evt.connection.id:
            self._reset(evt.deck.selected_connection)

    def _on_load_success(self, evt: LoadSuccessEvent):
        directory = evt.directory
        if not self._is_tracked(directory):
            return
        with self._lock:
            directory.notify(evt)
            if str(directory.path) in self._pending_open:
                self._pending_open.discard(str(directory.path))
                directory.open()
        self._fill_sub_tree(directory)

    def _on_load_failure(self, evt: LoadFailureEvent):
        if not self._is_tracked(evt.directory):
            return
        with self._lock:
            evt.directory.notify(evt)
            self._pending_open.discard(str(evt.directory.path))

    def _apply(self, directory: Directory, evt: Event) -> bool:
        if not self._is_tracked(directory):
            return False
        with self._lock:
            return directory.notify(evt)

    def _on_created(self, evt: CreatedSuccessEvent):
        if not self._apply(evt.parent, evt):
            return
        with self._lock:
            self._directories[str(evt.directory.path)] = evt.directory
        node = Node.for_directory(evt.directory)
        self.tree.add(str(evt.parent.path), node.id, node)

    def _on_deleted(self, evt: DeletedSuccessEvent):
        if not self._apply(evt.parent, evt):
            return
        with self._lock:
            self._forget_below(str(evt.path))
        self.tree.remove(str(evt.path))

    def _on_file_deleted(self, evt: FileDeletedSuccessEvent):
        if self._apply(evt.parent, evt):
            self.tree.remove(evt.file.full_path)

    def _on_uploaded(self, evt: ContentUploadedSuccessEvent):
        if not self._apply(evt.directory, evt):
            return
        node = Node.for_file(evt.content.file)
        self.tree.add(str(evt.directory.path), node.id, node)
        self.notifier.notify_info(f"Uploaded {evt.content.file.name}")

    def _on_upload_failure(self, evt: ContentUploadedFailureEvent):
        if self._apply(evt.directory, evt):
            self.tree.remove(evt.content.file.full_path)

    def _on_downloaded(self, evt: ContentDownloadedSuccessEvent):
        self.notifier.notify_info(f"Downloaded {evt.content.file.name} to {evt.content.local_path}")
