"""S3-backed directory repository: listings, markers, transfers and bus handlers."""
import logging
from typing import Callable, Optional

from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from s3box.core.context import Context
from s3box.core.deck import REMOVE_EVENT, Connection, ConnectionID, RemoveSuccessEvent
from s3box.core.directory import Content, Directory, File, build_loaded_directory
from s3box.core.directory_events import (
    CONTENT_DOWNLOADED_EVENT,
    CONTENT_UPLOADED_EVENT,
    CREATED_EVENT,
    DELETED_EVENT,
    FILE_DELETED_EVENT,
    FILE_LOAD_EVENT,
    LOAD_EVENT,
    ContentDownloadedEvent,
    ContentDownloadedFailureEvent,
    ContentDownloadedSuccessEvent,
    ContentUploadedEvent,
    ContentUploadedFailureEvent,
    ContentUploadedSuccessEvent,
    CreatedEvent,
    CreatedFailureEvent,
    CreatedSuccessEvent,
    DeletedEvent,
    DeletedFailureEvent,
    DeletedSuccessEvent,
    FileDeletedEvent,
    FileDeletedFailureEvent,
    FileDeletedSuccessEvent,
    FileLoadEvent,
    FileLoadFailureEvent,
    FileLoadSuccessEvent,
    LoadEvent,
    LoadFailureEvent,
    LoadSuccessEvent,
)
from s3box.core.events import Event, EventBus, is_
from s3box.engines.s3_object import S3Object
from s3box.engines.s3_session import ClientFactory, SessionCache, map_s3_error
from s3box.shared.errors import S3BoxError, TechnicalError
from s3box.shared.logging_ import log_event
from s3box.shared.models import DEFAULT_TIMEOUT_IN_SECONDS
from s3box.shared.paths import (
    RemotePath,
    directory_to_marker_key,
    file_to_key,
    key_to_object_name,
    path_to_search_key,
)

LIST_PAGE_SIZE = 1000
DEFAULT_HANDLER_WORKERS = 5

# Managed transfers for user uploads/downloads (multipart above 8 MiB)
TRANSFER_CONFIG = TransferConfig(multipart_threshold=8 * 1024 * 1024, max_concurrency=4)


class S3DirectoryRepository:
    """
    Maps directories and files of a connection onto S3 keys.

    Besides the direct API, the repository subscribes to the directory
    events on the bus, performs the I/O and publishes exactly one
    ``.success`` or ``.failure`` per request.
    """

    def __init__(
        self,
        connection_provider: Callable[[ConnectionID], Connection],
        bus: Optional[EventBus] = None,
        notifier=None,
        client_factory: Optional[ClientFactory] = None,
        timeout_in_seconds: Callable[[], float] = lambda: DEFAULT_TIMEOUT_IN_SECONDS,
        workers: int = DEFAULT_HANDLER_WORKERS,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the repository.

        Args:
            connection_provider: Resolves a connection id to its current Connection
            bus: Event bus to serve; no subscription is made when None
            notifier: Notification repository receiving failures
            client_factory: Builds an SDK client for a connection
            timeout_in_seconds: Returns the per-operation timeout
            workers: Listener threads of the bus subscription
            logger: Optional logger instance
        """
        self.connection_provider = connection_provider
        self.bus = bus
        self.notifier = notifier
        self.timeout_in_seconds = timeout_in_seconds
        self.logger = logger or logging.getLogger(__name__)
        self.sessions = SessionCache(client_factory)

        if bus is not None:
            self.subscriber = (
                bus.subscribe("s3-directory-repository")
                .on(is_(LOAD_EVENT), self._handle_load)
                .on(is_(CREATED_EVENT), self._handle_created)
                .on(is_(DELETED_EVENT), self._handle_deleted)
                .on(is_(FILE_DELETED_EVENT), self._handle_file_deleted)
                .on(is_(FILE_LOAD_EVENT), self._handle_file_load)
                .on(is_(CONTENT_UPLOADED_EVENT), self._handle_uploaded)
                .on(is_(CONTENT_DOWNLOADED_EVENT), self._handle_downloaded)
                .on(is_(REMOVE_EVENT.as_success()), self._on_connection_removed)
                .listen_with_workers(workers)
            )

    def _session(self, connection_id: ConnectionID):
        return self.sessions.get(self.connection_provider(connection_id))

    # Repository API

    def get_by_path(self, ctx: Context, connection_id: ConnectionID, path: str) -> Directory:
        """
        List the direct children of a directory.

        Args:
            ctx: Operation context, checked between pages
            connection_id: Connection to list with
            path: Directory path

        Returns:
            A LOADED directory holding its sub-directories and files

        Raises:
            NotFoundError: If the bucket does not exist
            TechnicalError: On any other SDK failure
            CancelledError: If ctx is cancelled
        """
        path = RemotePath.new(path)
        session = self._session(connection_id)
        bucket = session.connection.bucket
        search_key = path_to_search_key(path)

        sub_directories: list[Directory] = []
        files: list[File] = []
        try:
            paginator = session.client.get_paginator("list_objects_v2")
            pages = paginator.paginate(
                Bucket=bucket,
                Prefix=search_key,
                Delimiter="/",
                PaginationConfig={"PageSize": LIST_PAGE_SIZE},
            )
            for page in pages:
                ctx.raise_if_done()
                for cp in page.get("CommonPrefixes", []):
                    prefix = cp["Prefix"]
                    if prefix == search_key or not prefix.endswith("/"):
                        continue
                    sub_directories.append(
                        Directory(connection_id, key_to_object_name(prefix), path)
                    )
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key == search_key:
                        continue
                    files.append(File(
                        key_to_object_name(key),
                        path,
                        size_bytes=obj.get("Size", 0),
                        last_modified=obj.get("LastModified"),
                    ))
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, search_key or "/", bucket) from exc

        self.logger.debug(
            f"Listed {bucket}/{search_key}: {len(sub_directories)} directories, {len(files)} files"
        )
        return build_loaded_directory(connection_id, path, sub_directories, files)

    def save(self, ctx: Context, connection_id: ConnectionID, directory: Directory):
        """Write the empty marker object of *directory*."""
        ctx.raise_if_done()
        session = self._session(connection_id)
        key = directory_to_marker_key(directory.path)
        try:
            session.client.put_object(Bucket=session.connection.bucket, Key=key, Body=b"")
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, key, session.connection.bucket) from exc

    def delete(self, ctx: Context, connection_id: ConnectionID, path: str):
        """Delete the marker object of the directory at *path*."""
        ctx.raise_if_done()
        session = self._session(connection_id)
        key = directory_to_marker_key(RemotePath.new(path))
        try:
            session.client.delete_object(Bucket=session.connection.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, key, session.connection.bucket) from exc

    def delete_file(self, ctx: Context, connection_id: ConnectionID, file: File):
        ctx.raise_if_done()
        session = self._session(connection_id)
        key = file_to_key(file.full_path)
        try:
            session.client.delete_object(Bucket=session.connection.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, key, session.connection.bucket) from exc

    def download_file(self, ctx: Context, connection_id: ConnectionID, content: Content):
        """Download the object of *content.file* into its local path."""
        ctx.raise_if_done()
        session = self._session(connection_id)
        key = file_to_key(content.file.full_path)
        fh = content.open("wb")
        try:
            session.client.download_fileobj(session.connection.bucket, key, fh, Config=TRANSFER_CONFIG)
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, key, session.connection.bucket) from exc
        finally:
            fh.close()
        self.logger.info(f"Downloaded {session.connection.bucket}/{key} to {content.local_path}")

    def upload_file(self, ctx: Context, connection_id: ConnectionID, content: Content):
        """Upload the local file of *content* to the object of *content.file*."""
        ctx.raise_if_done()
        session = self._session(connection_id)
        key = file_to_key(content.file.full_path)
        fh = content.open("rb")
        try:
            session.client.upload_fileobj(fh, session.connection.bucket, key, Config=TRANSFER_CONFIG)
        except (ClientError, BotoCoreError) as exc:
            raise map_s3_error(exc, key, session.connection.bucket) from exc
        finally:
            fh.close()
        self.logger.info(f"Uploaded {content.local_path} to {session.connection.bucket}/{key}")

    def load_content(self, ctx: Context, connection_id: ConnectionID, file: File) -> S3Object:
        """Open a random-access stream over the object of *file*."""
        ctx.raise_if_done()
        session = self._session(connection_id)
        return S3Object(session.client, session.connection.bucket, file, ctx=ctx)

    # Bus handlers

    def _on_connection_removed(self, evt: RemoveSuccessEvent):
        self.sessions.invalidate(evt.connection.id)

    def _serve(
        self,
        evt: Event,
        action: str,
        operation: Callable[[Context], Event],
        failure: Callable[[S3BoxError], Event],
        timeout: bool = True,
    ):
        """
        Run *operation* and publish exactly one outcome for *evt*.

        Args:
            evt: Request event being served
            action: Description used in logs and wrapped errors
            operation: Does the I/O and returns the success event
            failure: Builds the failure event from the domain error
            timeout: Bound the operation by the configured timeout
        """
        ctx = Context.with_timeout(evt.ctx, self.timeout_in_seconds()) if timeout else evt.ctx
        try:
            outcome = operation(ctx)
        except S3BoxError as exc:
            outcome = self._fail(evt, action, exc, failure)
        except Exception as exc:
            self.logger.exception(f"Unexpected error while {action}")
            error = TechnicalError(f"{action} failed: {exc}")
            error.__cause__ = exc
            outcome = self._fail(evt, action, error, failure)
        finally:
            if ctx is not evt.ctx:
                ctx.release()
        self.bus.publish(outcome)

    def _fail(
        self,
        evt: Event,
        action: str,
        error: S3BoxError,
        failure: Callable[[S3BoxError], Event],
    ) -> Event:
        log_event(self.logger, evt.type, "failure", message=f"{action}: {error}",
                  error_code=getattr(error, "code", None))
        if self.notifier is not None:
            self.notifier.notify_error(error)
        return failure(error)

    def _handle_load(self, evt: LoadEvent):
        directory = evt.directory

        def load(ctx: Context) -> Event:
            loaded = self.get_by_path(ctx, directory.connection_id, directory.path)
            return LoadSuccessEvent(directory, loaded.sub_directories(), loaded.files(), ctx=evt.ctx)

        self._serve(
            evt, f"loading directory {directory.path}", load,
            lambda exc: LoadFailureEvent(directory, error=exc, ctx=evt.ctx),
        )

    def _handle_created(self, evt: CreatedEvent):
        def create(ctx: Context) -> Event:
            self.save(ctx, evt.directory.connection_id, evt.directory)
            return CreatedSuccessEvent(evt.parent, evt.directory, ctx=evt.ctx)

        self._serve(
            evt, f"creating directory {evt.directory.path}", create,
            lambda exc: CreatedFailureEvent(evt.parent, evt.directory, error=exc, ctx=evt.ctx),
        )

    def _handle_deleted(self, evt: DeletedEvent):
        def delete(ctx: Context) -> Event:
            self.delete(ctx, evt.parent.connection_id, evt.path)
            return DeletedSuccessEvent(evt.parent, evt.path, ctx=evt.ctx)

        self._serve(
            evt, f"deleting directory {evt.path}", delete,
            lambda exc: DeletedFailureEvent(evt.parent, evt.path, error=exc, ctx=evt.ctx),
        )

    def _handle_file_deleted(self, evt: FileDeletedEvent):
        def delete(ctx: Context) -> Event:
            self.delete_file(ctx, evt.parent.connection_id, evt.file)
            return FileDeletedSuccessEvent(evt.parent, evt.file, ctx=evt.ctx)

        self._serve(
            evt, f"deleting file {evt.file.full_path}", delete,
            lambda exc: FileDeletedFailureEvent(evt.parent, evt.file, error=exc, ctx=evt.ctx),
        )

    def _handle_file_load(self, evt: FileLoadEvent):
        def load(ctx: Context) -> Event:
            obj = self.load_content(ctx, evt.connection_id, evt.file)
            return FileLoadSuccessEvent(evt.connection_id, evt.file, obj, ctx=evt.ctx)

        # The stream outlives the request: its writes follow the caller context only
        self._serve(
            evt, f"loading file {evt.file.full_path}", load,
            lambda exc: FileLoadFailureEvent(evt.connection_id, evt.file, error=exc, ctx=evt.ctx),
            timeout=False,
        )

    def _handle_uploaded(self, evt: ContentUploadedEvent):
        def upload(ctx: Context) -> Event:
            self.upload_file(ctx, evt.directory.connection_id, evt.content)
            return ContentUploadedSuccessEvent(evt.directory, evt.content, ctx=evt.ctx)

        self._serve(
            evt, f"uploading file {evt.content.file.full_path}", upload,
            lambda exc: ContentUploadedFailureEvent(evt.directory, evt.content, error=exc, ctx=evt.ctx),
        )

    def _handle_downloaded(self, evt: ContentDownloadedEvent):
        def download(ctx: Context) -> Event:
            self.download_file(ctx, evt.connection_id, evt.content)
            return ContentDownloadedSuccessEvent(evt.connection_id, evt.content, ctx=evt.ctx)

        self._serve(
            evt, f"downloading file {evt.content.file.full_path}", download,
            lambda exc: ContentDownloadedFailureEvent(evt.connection_id, evt.content, error=exc, ctx=evt.ctx),
        )
