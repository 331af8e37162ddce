"""Connection deck: credentialed backend descriptors with a single selection."""
import copy
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from s3box.core.events import ErrorEvent, Event, EventType
from s3box.shared.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ConnectionID = uuid.UUID
NIL_CONNECTION_ID: ConnectionID = uuid.UUID(int=0)

DEFAULT_AWS_REGION = "us-east-1"


def new_connection_id() -> ConnectionID:
    return uuid.uuid4()


class Provider(Enum):
    """Backend flavour selecting which connection fields apply."""

    AWS = "aws"
    S3_LIKE = "s3-like"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Provider":
        """Parse a persisted provider; unknown values map to S3-like."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return DEFAULT_PROVIDER


DEFAULT_PROVIDER = Provider.S3_LIKE


class Connection:
    """
    A credentialed backend descriptor.

    Every mutator is a no-op on a read-only connection and bumps
    ``revision`` by one only when the value actually changes.
    ``set_read_only`` is the only mutator still honoured when read-only.
    """

    def __init__(
        self,
        name: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        aws_region: Optional[str] = None,
        s3_like_server: Optional[str] = None,
        use_tls: Optional[bool] = None,
        read_only: bool = False,
        revision: int = 0,
        connection_id: Optional[ConnectionID] = None,
    ):
        self._id = connection_id or new_connection_id()
        self._name = name
        self._access_key = access_key
        self._secret_key = secret_key
        self._bucket = bucket
        self._provider: Optional[Provider] = None
        self._region = ""
        self._server = ""
        self._use_tls = False
        self._read_only = read_only
        self._revision = revision

        if s3_like_server:
            self._apply_s3_like(s3_like_server, True if use_tls is None else use_tls)
        elif aws_region:
            self._apply_aws(aws_region)
        if self._provider is None:
            self._apply_aws(DEFAULT_AWS_REGION)

    def _apply_aws(self, region: str):
        self._provider = Provider.AWS
        self._region = region
        self._use_tls = True
        self._server = ""

    def _apply_s3_like(self, server: str, use_tls: bool):
        self._provider = Provider.S3_LIKE
        self._server = server
        self._use_tls = use_tls
        self._region = ""

    # Read accessors

    @property
    def id(self) -> ConnectionID:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def access_key(self) -> str:
        return self._access_key

    @property
    def secret_key(self) -> str:
        return self._secret_key

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def region(self) -> str:
        return self._region

    @property
    def server(self) -> str:
        return self._server

    @property
    def use_tls(self) -> bool:
        return self._use_tls

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def revision(self) -> int:
        return self._revision

    # Mutators

    def _set(self, attr: str, value) -> bool:
        if self._read_only or getattr(self, attr) == value:
            return False
        setattr(self, attr, value)
        self._revision += 1
        return True

    def rename(self, name: str) -> bool:
        return self._set("_name", name)

    def update_access_key(self, access_key: str) -> bool:
        return self._set("_access_key", access_key)

    def update_secret_key(self, secret_key: str) -> bool:
        return self._set("_secret_key", secret_key)

    def update_bucket(self, bucket: str) -> bool:
        return self._set("_bucket", bucket)

    def update_server(self, server: str) -> bool:
        if self._provider != Provider.S3_LIKE:
            return False
        return self._set("_server", server)

    def change_region(self, region: str) -> bool:
        if self._provider != Provider.AWS or not region:
            return False
        return self._set("_region", region)

    def turn_tls_on(self) -> bool:
        if self._provider != Provider.S3_LIKE:
            return False
        return self._set("_use_tls", True)

    def turn_tls_off(self) -> bool:
        if self._provider != Provider.S3_LIKE:
            return False
        return self._set("_use_tls", False)

    def set_read_only(self, read_only: bool) -> bool:
        if read_only == self._read_only:
            return False
        self._read_only = read_only
        self._revision += 1
        return True

    def as_aws(self, region: str) -> bool:
        """Switch to AWS, resetting provider-specific fields."""
        if self._read_only or self._provider == Provider.AWS or not region:
            return False
        self._apply_aws(region)
        self._revision += 1
        return True

    def as_s3_like(self, server: str, use_tls: bool = True) -> bool:
        """Switch to an S3-compatible endpoint, resetting provider-specific fields."""
        if self._read_only or self._provider == Provider.S3_LIKE or not server:
            return False
        self._apply_s3_like(server, use_tls)
        self._revision += 1
        return True

    # Identity

    def is_same(self, other: Optional["Connection"]) -> bool:
        """True when *other* has the same id and the same revision."""
        return other is not None and self._id == other._id and self._revision == other._revision

    def copy(self) -> "Connection":
        return copy.copy(self)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Connection):
            return NotImplemented
        return self.__dict__ == other.__dict__

    __hash__ = None

    def __repr__(self) -> str:
        target = self._region if self._provider == Provider.AWS else self._server
        return (
            f"Connection({str(self._id)[:8]}, {self._name!r}, {self._provider.value}, "
            f"{target}, bucket={self._bucket!r}, rev={self._revision}"
            f"{', read-only' if self._read_only else ''})"
        )


# Events

SELECT_EVENT = EventType("deck.select")
CREATE_EVENT = EventType("deck.create")
UPDATE_EVENT = EventType("deck.update")
REMOVE_EVENT = EventType("deck.remove")


@dataclass
class SelectEvent(Event):
    TYPE = SELECT_EVENT
    deck: "Deck"
    connection: Optional[Connection]
    previous: Optional[Connection] = None


@dataclass
class SelectSuccessEvent(Event):
    TYPE = SELECT_EVENT.as_success()
    deck: "Deck"
    connection: Optional[Connection]


@dataclass
class SelectFailureEvent(ErrorEvent):
    TYPE = SELECT_EVENT.as_failure()
    connection: Optional[Connection]
    previous: Optional[Connection] = None


@dataclass
class CreateEvent(Event):
    TYPE = CREATE_EVENT
    deck: "Deck"
    connection: Connection


@dataclass
class CreateSuccessEvent(Event):
    TYPE = CREATE_EVENT.as_success()
    deck: "Deck"
    connection: Connection


@dataclass
class CreateFailureEvent(ErrorEvent):
    TYPE = CREATE_EVENT.as_failure()
    connection: Connection


@dataclass
class UpdateEvent(Event):
    TYPE = UPDATE_EVENT
    deck: "Deck"
    connection: Connection
    previous: Connection


@dataclass
class UpdateSuccessEvent(Event):
    TYPE = UPDATE_EVENT.as_success()
    deck: "Deck"
    connection: Connection


@dataclass
class UpdateFailureEvent(ErrorEvent):
    TYPE = UPDATE_EVENT.as_failure()
    previous: Connection


@dataclass
class RemoveEvent(Event):
    TYPE = REMOVE_EVENT
    deck: "Deck"
    connection: Connection
    removed_index: int
    was_selected: bool


@dataclass
class RemoveSuccessEvent(Event):
    TYPE = REMOVE_EVENT.as_success()
    deck: "Deck"
    connection: Connection


@dataclass
class RemoveFailureEvent(ErrorEvent):
    TYPE = REMOVE_EVENT.as_failure()
    connection: Connection
    removed_index: int
    was_selected: bool


class Deck:
    """
    The set of known connections with at most one selected.

    The deck never publishes: every mutator returns the event the caller
    must publish on the bus.
    """

    def __init__(self, connections: Optional[list[Connection]] = None):
        self._connections: list[Connection] = []
        self.selected_id: ConnectionID = NIL_CONNECTION_ID
        for conn in connections or []:
            self._append(conn)

    def _append(self, conn: Connection):
        if any(c.id == conn.id for c in self._connections):
            raise ValidationError(f"duplicate connection id {conn.id}")
        self._connections.append(conn)

    def _index_of(self, connection_id: ConnectionID) -> int:
        for i, conn in enumerate(self._connections):
            if conn.id == connection_id:
                return i
        raise NotFoundError(f"connection {connection_id} not found")

    def get(self) -> list[Connection]:
        """All connections in insertion order."""
        return list(self._connections)

    def get_by_id(self, connection_id: ConnectionID) -> Connection:
        """
        Raises:
            NotFoundError: If no connection has this id
        """
        return self._connections[self._index_of(connection_id)]

    @property
    def selected_connection(self) -> Optional[Connection]:
        if self.selected_id == NIL_CONNECTION_ID:
            return None
        for conn in self._connections:
            if conn.id == self.selected_id:
                return conn
        return None

    def create(
        self,
        name: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        **options,
    ) -> CreateEvent:
        """
        Build a new connection and append it to the deck.

        Args:
            name: Display name
            access_key: Access key id
            secret_key: Secret access key
            bucket: Bucket to browse
            **options: Connection options (aws_region, s3_like_server,
                use_tls, read_only, revision, connection_id)

        Returns:
            The CreateEvent to publish
        """
        conn = Connection(name, access_key, secret_key, bucket, **options)
        self._append(conn)
        return CreateEvent(self, conn)

    def select(self, connection_id: ConnectionID) -> SelectEvent:
        """
        Raises:
            NotFoundError: If no connection has this id; selection is unchanged
        """
        conn = self.get_by_id(connection_id)
        previous = self.selected_connection
        self.selected_id = conn.id
        return SelectEvent(self, conn, previous)

    def remove_a_connection(self, connection_id: ConnectionID) -> RemoveEvent:
        """
        Remove a connection, resetting the selection if it was selected.

        Raises:
            NotFoundError: If no connection has this id
        """
        index = self._index_of(connection_id)
        conn = self._connections.pop(index)
        was_selected = self.selected_id == conn.id
        if was_selected:
            self.selected_id = NIL_CONNECTION_ID
        return RemoveEvent(self, conn, index, was_selected)

    def update(
        self,
        connection_id: ConnectionID,
        name: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        bucket: Optional[str] = None,
        aws_region: Optional[str] = None,
        s3_like_server: Optional[str] = None,
        use_tls: Optional[bool] = None,
        read_only: Optional[bool] = None,
    ) -> UpdateEvent:
        """
        Apply the given changes to a connection.

        Unchanged or omitted values are left alone and do not bump the
        revision. Passing ``read_only=False`` unlocks the connection before
        the other changes are applied; ``read_only=True`` locks it after.

        Raises:
            NotFoundError: If no connection has this id
        """
        conn = self.get_by_id(connection_id)
        previous = conn.copy()

        if read_only is False:
            conn.set_read_only(False)

        if aws_region is not None:
            if conn.provider == Provider.AWS:
                conn.change_region(aws_region)
            else:
                conn.as_aws(aws_region)
        if s3_like_server is not None:
            if conn.provider == Provider.S3_LIKE:
                conn.update_server(s3_like_server)
            else:
                conn.as_s3_like(s3_like_server, True if use_tls is None else use_tls)
        if use_tls is not None:
            if use_tls:
                conn.turn_tls_on()
            else:
                conn.turn_tls_off()

        if name is not None:
            conn.rename(name)
        if access_key is not None:
            conn.update_access_key(access_key)
        if secret_key is not None:
            conn.update_secret_key(secret_key)
        if bucket is not None:
            conn.update_bucket(bucket)

        if read_only is True:
            conn.set_read_only(True)

        return UpdateEvent(self, conn, previous)

    def notify(self, evt: Event):
        """
        Compensate the deck for a failure event.

        Create failures drop the created connection, select failures
        restore the previous selection, remove failures re-insert the
        connection at its former index and update failures restore the
        previous snapshot. Any other event is ignored.
        """
        if isinstance(evt, CreateFailureEvent):
            try:
                self.remove_a_connection(evt.connection.id)
            except NotFoundError:
                logger.warning(f"Rollback of create: connection {evt.connection.id} already gone")

        elif isinstance(evt, SelectFailureEvent):
            self.selected_id = evt.previous.id if evt.previous is not None else NIL_CONNECTION_ID

        elif isinstance(evt, RemoveFailureEvent):
            if any(c.id == evt.connection.id for c in self._connections):
                return
            index = min(max(evt.removed_index, 0), len(self._connections))
            self._connections.insert(index, evt.connection)
            if evt.was_selected:
                self.selected_id = evt.connection.id

        elif isinstance(evt, UpdateFailureEvent):
            try:
                index = self._index_of(evt.previous.id)
            except NotFoundError:
                logger.warning(f"Rollback of update: connection {evt.previous.id} is gone")
                return
            self._connections[index] = evt.previous.copy()

    def __len__(self) -> int:
        return len(self._connections)

    def __iter__(self):
        return iter(list(self._connections))
