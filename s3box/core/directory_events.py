"""Events exchanged between the directory tree and the S3 adapter."""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from s3box.core.deck import ConnectionID
from s3box.core.events import ErrorEvent, Event, EventType
from s3box.shared.paths import RemotePath

if TYPE_CHECKING:
    from s3box.core.directory import Content, Directory, File

LOAD_EVENT = EventType("event.directory.load")
CREATED_EVENT = EventType("event.directory.created")
DELETED_EVENT = EventType("event.directory.deleted")
FILE_LOAD_EVENT = EventType("event.file.load")
FILE_DELETED_EVENT = EventType("event.file.deleted")
CONTENT_UPLOADED_EVENT = EventType("event.content.uploaded")
CONTENT_DOWNLOADED_EVENT = EventType("event.content.downloaded")


# event.directory.load

@dataclass
class LoadEvent(Event):
    TYPE = LOAD_EVENT
    directory: "Directory"


@dataclass
class LoadSuccessEvent(Event):
    TYPE = LOAD_EVENT.as_success()
    directory: "Directory"
    sub_directories: list
    files: list


@dataclass
class LoadFailureEvent(ErrorEvent):
    TYPE = LOAD_EVENT.as_failure()
    directory: "Directory"


# event.directory.created

@dataclass
class CreatedEvent(Event):
    TYPE = CREATED_EVENT
    parent: "Directory"
    directory: "Directory"


@dataclass
class CreatedSuccessEvent(Event):
    TYPE = CREATED_EVENT.as_success()
    parent: "Directory"
    directory: "Directory"


@dataclass
class CreatedFailureEvent(ErrorEvent):
    TYPE = CREATED_EVENT.as_failure()
    parent: "Directory"
    directory: "Directory"


# event.directory.deleted

@dataclass
class DeletedEvent(Event):
    TYPE = DELETED_EVENT
    parent: "Directory"
    path: RemotePath


@dataclass
class DeletedSuccessEvent(Event):
    TYPE = DELETED_EVENT.as_success()
    parent: "Directory"
    path: RemotePath


@dataclass
class DeletedFailureEvent(ErrorEvent):
    TYPE = DELETED_EVENT.as_failure()
    parent: "Directory"
    path: RemotePath


# event.file.deleted

@dataclass
class FileDeletedEvent(Event):
    TYPE = FILE_DELETED_EVENT
    parent: "Directory"
    file: "File"


@dataclass
class FileDeletedSuccessEvent(Event):
    TYPE = FILE_DELETED_EVENT.as_success()
    parent: "Directory"
    file: "File"


@dataclass
class FileDeletedFailureEvent(ErrorEvent):
    TYPE = FILE_DELETED_EVENT.as_failure()
    parent: "Directory"
    file: "File"


# event.file.load

@dataclass
class FileLoadEvent(Event):
    TYPE = FILE_LOAD_EVENT
    connection_id: ConnectionID
    file: "File"


@dataclass
class FileLoadSuccessEvent(Event):
    """Carries an open random-access stream over the object."""

    TYPE = FILE_LOAD_EVENT.as_success()
    connection_id: ConnectionID
    file: "File"
    content: Any


@dataclass
class FileLoadFailureEvent(ErrorEvent):
    TYPE = FILE_LOAD_EVENT.as_failure()
    connection_id: ConnectionID
    file: "File"


# event.content.uploaded

@dataclass
class ContentUploadedEvent(Event):
    TYPE = CONTENT_UPLOADED_EVENT
    directory: "Directory"
    content: "Content"


@dataclass
class ContentUploadedSuccessEvent(Event):
    TYPE = CONTENT_UPLOADED_EVENT.as_success()
    directory: "Directory"
    content: "Content"


@dataclass
class ContentUploadedFailureEvent(ErrorEvent):
    TYPE = CONTENT_UPLOADED_EVENT.as_failure()
    directory: "Directory"
    content: "Content"


# event.content.downloaded

@dataclass
class ContentDownloadedEvent(Event):
    TYPE = CONTENT_DOWNLOADED_EVENT
    connection_id: ConnectionID
    content: "Content"


@dataclass
class ContentDownloadedSuccessEvent(Event):
    TYPE = CONTENT_DOWNLOADED_EVENT.as_success()
    connection_id: ConnectionID
    content: "Content"


@dataclass
class ContentDownloadedFailureEvent(ErrorEvent):
    TYPE = CONTENT_DOWNLOADED_EVENT.as_failure()
    connection_id: ConnectionID
    content: "Content"
