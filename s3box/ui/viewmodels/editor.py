"""Text editor view-model."""
import logging
import os
from threading import Lock, RLock
from typing import Any, Optional

from PySide6.QtCore import QObject, Signal

from s3box.core.context import Context
from s3box.core.deck import (
    REMOVE_EVENT,
    SELECT_EVENT,
    UPDATE_EVENT,
    Connection,
    ConnectionID,
    RemoveSuccessEvent,
    SelectSuccessEvent,
    UpdateSuccessEvent,
)
from s3box.core.directory import File
from s3box.core.directory_events import FILE_LOAD_EVENT, FileLoadFailureEvent, FileLoadSuccessEvent
from s3box.core.events import EventBus, is_
from s3box.shared.errors import (
    EditorAlreadyOpenedError,
    FileTooLargeError,
    NoConnectionSelectedError,
    NotLoadedError,
)
from s3box.shared.models import DEFAULT_MAX_FILE_PREVIEW_SIZE_BYTES, format_size_bytes
from s3box.ui.bindings import ObservableValue

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


class OpenedEditor(QObject):
    """An editor window's state for one file."""

    focus_requested = Signal()
    closed = Signal()

    def __init__(self, file: File, connection_id: ConnectionID, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.file = file
        self.connection_id = connection_id
        self.content = ObservableValue("")
        self.is_loaded = ObservableValue(False)
        self.error_msg = ObservableValue("")
        self._stream: Any = None
        self._lock = Lock()

    @property
    def stream(self) -> Any:
        with self._lock:
            return self._stream

    def attach(self, stream: Any):
        with self._lock:
            self._stream = stream

    def on_save(self, text: str) -> int:
        """
        Replace the whole remote object with *text*.

        Returns:
            Number of bytes written

        Raises:
            NotLoadedError: If the content was never delivered
            S3BoxError: If the upload fails; the previous content is kept
        """
        with self._lock:
            stream = self._stream
            if stream is None:
                raise NotLoadedError(f"content of {self.file.full_path} is not loaded")
            if stream.exists:
                stream.seek(0, os.SEEK_SET)
            written = stream.write(text.encode(ENCODING))
        self.content.set(text)
        return written

    def release(self):
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()
        self.closed.emit()


class EditorViewModel:
    """
    Opened editors keyed by file full path.

    Editors belong to the selected connection: when it changes or goes
    away every editor is closed.
    """

    def __init__(
        self,
        bus: EventBus,
        notifier,
        settings_vm=None,
        initial_connection: Optional[Connection] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.bus = bus
        self.notifier = notifier
        self.settings_vm = settings_vm
        self.logger = logger or logging.getLogger(__name__)

        self._editors: dict[str, OpenedEditor] = {}
        self._connection = initial_connection.copy() if initial_connection is not None else None
        self._lock = RLock()

        self.subscriber = (
            bus.subscribe("editor-viewmodel")
            .on(is_(SELECT_EVENT.as_success()), self._on_select)
            .on(is_(UPDATE_EVENT.as_success()), self._on_update)
            .on(is_(REMOVE_EVENT.as_success()), self._on_remove)
            .on(is_(FILE_LOAD_EVENT.as_success()), self._on_load_success)
            .on(is_(FILE_LOAD_EVENT.as_failure()), self._on_load_failure)
            .listen_with_workers(1)
        )

    @property
    def connection(self) -> Optional[Connection]:
        """Snapshot of the connection the editors belong to."""
        with self._lock:
            return self._connection

    def _max_preview_size(self) -> int:
        if self.settings_vm is None:
            return DEFAULT_MAX_FILE_PREVIEW_SIZE_BYTES
        return self.settings_vm.current_max_file_preview_size_bytes()

    def open(self, file: File, ctx: Optional[Context] = None) -> OpenedEditor:
        """
        Open an editor on *file* and request its content.

        Args:
            file: File to edit
            ctx: Context attached to the load request

        Returns:
            The editor, not loaded yet

        Raises:
            NoConnectionSelectedError: If no connection is selected
            EditorAlreadyOpenedError: If the file already has an editor (focus is requested on it)
            FileTooLargeError: If the file exceeds the preview size limit
        """
        with self._lock:
            if self._connection is None:
                raise NoConnectionSelectedError()

            existing = self._editors.get(file.full_path)
            if existing is not None:
                existing.focus_requested.emit()
                raise EditorAlreadyOpenedError(f"editor already opened for {file.full_path}")

            limit = self._max_preview_size()
            if file.size_bytes > limit:
                raise FileTooLargeError(
                    f"{file.name} is {format_size_bytes(file.size_bytes)}, "
                    f"preview is limited to {format_size_bytes(limit)}"
                )

            editor = OpenedEditor(file, self._connection.id)
            self._editors[file.full_path] = editor
            evt = file.load(self._connection.id)

        if ctx is not None:
            evt.ctx = ctx
        self.bus.publish(evt)
        self.logger.debug(f"Opened editor on {file.full_path}")
        return editor

    def is_opened(self, file: File) -> bool:
        with self._lock:
            return file.full_path in self._editors

    def opened_editors(self) -> list[OpenedEditor]:
        with self._lock:
            return list(self._editors.values())

    def close(self, editor: OpenedEditor):
        with self._lock:
            if self._editors.get(editor.file.full_path) is not editor:
                return
            del self._editors[editor.file.full_path]
        editor.release()

    def close_all(self):
        with self._lock:
            editors = list(self._editors.values())
            self._editors.clear()
        for editor in editors:
            editor.release()
        if editors:
            self.logger.info(f"Closed {len(editors)} editors")

    # Bus handlers

    def _switch_to(self, connection: Optional[Connection]):
        with self._lock:
            current = self._connection
            changed = (current is None) != (connection is None) or (
                current is not None and not current.is_same(connection)
            )
            if not changed:
                return
            self._connection = connection.copy() if connection is not None else None
        self.close_all()

    def _on_select(self, evt: SelectSuccessEvent):
        self._switch_to(evt.connection)

    def _on_update(self, evt: UpdateSuccessEvent):
        with self._lock:
            current = self._connection
        if current is None or current.id != evt.connection.id:
            return
        self._switch_to(evt.connection)

    def _on_remove(self, evt: RemoveSuccessEvent):
        with self._lock:
            current = self._connection
        if current is not None and current.id == evt.connection.id:
            self._switch_to(None)

    def _on_load_success(self, evt: FileLoadSuccessEvent):
        with self._lock:
            editor = self._editors.get(evt.file.full_path)
        if editor is None or editor.connection_id != evt.connection_id:
            # Closed before the content arrived
            evt.content.close()
            return

        stream = evt.content
        try:
            if stream.exists:
                stream.seek(0, os.SEEK_SET)
                text = stream.readall().decode(ENCODING)
            else:
                text = ""
        except (OSError, EOFError, ValueError) as exc:
            self.notifier.notify_error(exc)
            editor.error_msg.set(str(exc))
            editor.is_loaded.set(True)
            return

        editor.attach(stream)
        editor.content.set(text)
        editor.is_loaded.set(True)

    def _on_load_failure(self, evt: FileLoadFailureEvent):
        with self._lock:
            editor = self._editors.get(evt.file.full_path)
        if editor is None:
            return
        editor.error_msg.set(str(evt.error))
        editor.is_loaded.set(True)
