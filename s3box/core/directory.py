"""Lazily loaded directory tree of a bucket."""
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import IO, Any, Optional

from s3box.core.deck import ConnectionID
from s3box.core.directory_events import (
    ContentDownloadedEvent,
    ContentUploadedEvent,
    ContentUploadedFailureEvent,
    ContentUploadedSuccessEvent,
    CreatedEvent,
    CreatedSuccessEvent,
    DeletedEvent,
    DeletedSuccessEvent,
    FileDeletedEvent,
    FileDeletedSuccessEvent,
    FileLoadEvent,
    LoadEvent,
    LoadFailureEvent,
    LoadSuccessEvent,
)
from s3box.core.directory_state import CONTENT_STATES, DirectoryState, assert_transition
from s3box.core.events import Event
from s3box.shared.errors import (
    AlreadyExistsError,
    NotFoundError,
    NotLoadedError,
    TechnicalError,
    ValidationError,
)
from s3box.shared.paths import NIL_PARENT_PATH, ROOT_PATH, RemotePath, validate_name

logger = logging.getLogger(__name__)


@dataclass
class File:
    """A file inside a directory. Identity is (directory_path, name)."""

    name: str
    directory_path: RemotePath
    size_bytes: int = 0
    last_modified: Optional[datetime] = None

    def __post_init__(self):
        """Validate the name and normalize the directory path."""
        validate_name(self.name, "file")
        self.directory_path = RemotePath.new(self.directory_path)
        if self.size_bytes < 0:
            raise ValidationError(f"negative file size: {self.size_bytes}")

    @property
    def full_path(self) -> str:
        return f"{self.directory_path}{self.name}"

    def is_same(self, other: Optional["File"]) -> bool:
        return other is not None and self.name == other.name and self.directory_path == other.directory_path

    def load(self, connection_id: ConnectionID) -> FileLoadEvent:
        """Request the file's content as a random-access stream."""
        return FileLoadEvent(connection_id, self)

    def download(self, connection_id: ConnectionID, local_path: str) -> ContentDownloadedEvent:
        """Request a download of the file into *local_path*."""
        return ContentDownloadedEvent(connection_id, Content(self, local_path=local_path))


class Content:
    """
    Byte content bound to a file.

    Backed either by a local file path (opened on demand, once) or by an
    already open stream.
    """

    def __init__(self, file: File, local_path: Optional[str] = None, stream: Any = None):
        self.file = file
        self.local_path = local_path
        self.stream = stream
        self._opened = False

    def open(self, mode: str = "rb") -> IO[bytes]:
        """
        Open the content for reading ("rb") or writing ("wb").

        Raises:
            TechnicalError: If the local file cannot be opened, or was already opened
        """
        if self.local_path:
            if self._opened:
                raise TechnicalError(f"content of {self.local_path} has already been opened")
            try:
                fh = open(self.local_path, mode)
            except OSError as exc:
                raise TechnicalError(f"cannot open {self.local_path}: {exc}") from exc
            self._opened = True
            self.stream = fh
            return fh
        if self.stream is None:
            raise TechnicalError(f"content of {self.file.full_path} is empty")
        return self.stream

    def __repr__(self) -> str:
        return f"Content({self.file.full_path!r}, local_path={self.local_path!r})"


class Directory:
    """
    A node of a connection's namespace.

    Children are only available once loaded; see ``directory_state`` for
    the lifecycle NOT_LOADED -> LOADING -> LOADED <-> OPENED.
    """

    def __init__(self, connection_id: ConnectionID, name: str, parent_path: str):
        parent_path = RemotePath.new(parent_path)
        if name == "":
            if not parent_path.is_nil:
                raise ValidationError("directory name is empty")
        else:
            validate_name(name, "directory")
        if name != "" and parent_path.is_nil:
            raise ValidationError(f"directory {name!r} has no parent path")

        self.connection_id = connection_id
        self.name = name
        self.parent_path = parent_path
        self.path = ROOT_PATH if name == "" else parent_path.new_sub_path(name)
        self.state = DirectoryState.NOT_LOADED
        self._sub_directories: list[Directory] = []
        self._files: list[File] = []

    @classmethod
    def new_root(cls, connection_id: ConnectionID) -> "Directory":
        return cls(connection_id, "", NIL_PARENT_PATH)

    @property
    def is_root(self) -> bool:
        return self.path == ROOT_PATH

    @property
    def is_loading(self) -> bool:
        return self.state == DirectoryState.LOADING

    @property
    def is_loaded(self) -> bool:
        return self.state in CONTENT_STATES

    @property
    def is_opened(self) -> bool:
        return self.state == DirectoryState.OPENED

    def is_same(self, other: Optional["Directory"]) -> bool:
        return other is not None and self.path == other.path and self.connection_id == other.connection_id

    def _subject(self) -> str:
        return f"directory {str(self.path)!r}"

    # State machine

    def load(self) -> LoadEvent:
        """
        Move to LOADING and return the event asking for the children.

        Raises:
            InvalidStateError: If the directory is loading or already loaded
        """
        self.state = assert_transition(self.state, "load", self._subject())
        return LoadEvent(self)

    def set_loaded(
        self,
        loaded: bool,
        sub_directories: Optional[list["Directory"]] = None,
        files: Optional[list[File]] = None
    ):
        """
        Complete a load.

        ``True`` installs the given children (replacing, never appending)
        and moves to LOADED; ``False`` reverts to NOT_LOADED.

        Raises:
            InvalidStateError: If the directory is not loading
        """
        if loaded:
            self.state = assert_transition(self.state, "loaded", self._subject())
            self._sub_directories = list(sub_directories or [])
            self._files = list(files or [])
        else:
            self.state = assert_transition(self.state, "load_failed", self._subject())
            self._sub_directories = []
            self._files = []

    def open(self):
        """Expand the directory; a no-op when already opened."""
        if self.state == DirectoryState.OPENED:
            return
        self.state = assert_transition(self.state, "open", self._subject())

    def close(self):
        """Collapse the directory; a no-op when merely loaded."""
        if self.state == DirectoryState.LOADED:
            return
        self.state = assert_transition(self.state, "close", self._subject())

    # Children

    def sub_directories(self) -> list["Directory"]:
        """
        Raises:
            NotLoadedError: Before the directory is loaded
        """
        if not self.is_loaded:
            raise NotLoadedError(f"{self._subject()} is not loaded")
        return list(self._sub_directories)

    def files(self) -> list[File]:
        """
        Raises:
            NotLoadedError: Before the directory is loaded
        """
        if not self.is_loaded:
            raise NotLoadedError(f"{self._subject()} is not loaded")
        return list(self._files)

    def get_file(self, name: str) -> File:
        for f in self.files():
            if f.name == name:
                return f
        raise NotFoundError(f"file {name!r} not found in {self._subject()}")

    def get_sub_directory(self, name: str) -> "Directory":
        path = self.path.new_sub_path(name)
        for d in self.sub_directories():
            if d.path == path:
                return d
        raise NotFoundError(f"sub-directory {name!r} not found in {self._subject()}")

    def is_file_exists(self, name: str) -> bool:
        return self.is_loaded and any(f.name == name for f in self._files)

    def new_sub_directory(self, name: str) -> CreatedEvent:
        """
        Reference a new, not yet loaded, child directory.

        The child is added to the tree once the creation succeeds.

        Raises:
            NotLoadedError: Before the directory is loaded
            AlreadyExistsError: If a child directory has this name
            ValidationError: If the name is invalid
        """
        path = self.path.new_sub_path(name)
        if any(d.path == path for d in self.sub_directories()):
            raise AlreadyExistsError(f"sub-directory {str(path)!r} already exists")
        return CreatedEvent(self, Directory(self.connection_id, name, self.path))

    def new_file(
        self,
        name: str,
        overwrite: bool = False,
        size_bytes: int = 0,
        last_modified: Optional[datetime] = None
    ) -> File:
        """
        Add a file to the directory.

        Raises:
            NotLoadedError: Before the directory is loaded
            AlreadyExistsError: If a file has this name and overwrite is False
            ValidationError: If the name is invalid
        """
        file = File(name, self.path, size_bytes=size_bytes, last_modified=last_modified)
        files = self.files()
        for i, existing in enumerate(files):
            if existing.is_same(file):
                if not overwrite:
                    raise AlreadyExistsError(f"file {name!r} already exists in {self._subject()}")
                self._files[i] = file
                return file
        self._files.append(file)
        return file

    def remove_file(self, name: str) -> FileDeletedEvent:
        """
        Raises:
            NotFoundError: If no file has this name
        """
        return FileDeletedEvent(self, self.get_file(name))

    def remove_sub_directory(self, name: str) -> DeletedEvent:
        """
        Raises:
            NotFoundError: If no child directory has this name
        """
        return DeletedEvent(self, self.get_sub_directory(name).path)

    def upload_file(self, local_path: str, overwrite: bool = False) -> ContentUploadedEvent:
        """
        Add the local file to this directory and request its upload.

        The file is added speculatively; a failed upload removes it again.

        Raises:
            NotLoadedError: Before the directory is loaded
            AlreadyExistsError: If the file exists and overwrite is False
            TechnicalError: If the local file cannot be read
        """
        if not self.is_loaded:
            raise NotLoadedError(f"{self._subject()} is not loaded")
        try:
            stat = os.stat(local_path)
        except OSError as exc:
            raise TechnicalError(f"cannot read {local_path}: {exc}") from exc
        file = self.new_file(
            os.path.basename(local_path),
            overwrite=overwrite,
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime),
        )
        return ContentUploadedEvent(self, Content(file, local_path=local_path))

    # Outcomes

    def notify(self, evt: Event) -> bool:
        """
        Apply a success or failure outcome addressed to this directory.

        Returns:
            True if the event concerned this directory and was applied
        """
        if isinstance(evt, LoadSuccessEvent) and self.is_same(evt.directory):
            self.set_loaded(True, evt.sub_directories, evt.files)
            return True

        if isinstance(evt, LoadFailureEvent) and self.is_same(evt.directory):
            if self.is_loading:
                self.set_loaded(False)
            return True

        if isinstance(evt, CreatedSuccessEvent) and self.is_same(evt.parent):
            if not any(d.path == evt.directory.path for d in self.sub_directories()):
                self._sub_directories.append(evt.directory)
            return True

        if isinstance(evt, DeletedSuccessEvent) and self.is_same(evt.parent):
            self._sub_directories = [d for d in self.sub_directories() if d.path != evt.path]
            return True

        if isinstance(evt, FileDeletedSuccessEvent) and self.is_same(evt.parent):
            self._files = [f for f in self.files() if not f.is_same(evt.file)]
            return True

        if isinstance(evt, ContentUploadedSuccessEvent) and self.is_same(evt.directory):
            uploaded = evt.content.file
            files = self.files()
            for i, f in enumerate(files):
                if f.is_same(uploaded):
                    self._files[i] = uploaded
                    return True
            self._files.append(uploaded)
            return True

        if isinstance(evt, ContentUploadedFailureEvent) and self.is_same(evt.directory):
            self._files = [f for f in self.files() if not f.is_same(evt.content.file)]
            return True

        return False

    def __repr__(self) -> str:
        return f"Directory({str(self.path)!r}, {self.state.value})"


def build_loaded_directory(
    connection_id: ConnectionID,
    path: RemotePath,
    sub_directories: list[Directory],
    files: list[File]
) -> Directory:
    """Return a LOADED directory at *path* holding the given children."""
    path = RemotePath.new(path)
    if path.is_root:
        directory = Directory.new_root(connection_id)
    else:
        directory = Directory(connection_id, path.directory_name(), path.parent_path())
    directory.load()
    directory.set_loaded(True, sub_directories, files)
    return directory


