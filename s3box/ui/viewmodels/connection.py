"""Connection deck view-model."""
import logging
from threading import RLock
from typing import IO, Optional

from s3box.core.deck import (
    CREATE_EVENT,
    REMOVE_EVENT,
    SELECT_EVENT,
    UPDATE_EVENT,
    Connection,
    ConnectionID,
    Deck,
    SelectEvent,
)
from s3box.core.events import Event, EventBus, is_one_of
from s3box.shared.errors import S3BoxError, TechnicalError
from s3box.ui.bindings import ObservableList, ObservableValue

logger = logging.getLogger(__name__)

_DECK_EVENTS = (SELECT_EVENT, CREATE_EVENT, UPDATE_EVENT, REMOVE_EVENT)


class ConnectionViewModel:
    """
    Projects the deck into observables and publishes deck mutations.

    Mutations apply to the in-memory deck immediately; a failure outcome
    from the repository rolls the deck back and surfaces the error.
    """

    def __init__(self, repository, bus: EventBus, notifier, logger: Optional[logging.Logger] = None):
        """
        Load the persisted deck and announce its selection.

        Args:
            repository: Deck repository
            bus: Application event bus
            notifier: Notification publisher
            logger: Optional logger instance
        """
        self.repository = repository
        self.bus = bus
        self.notifier = notifier
        self.logger = logger or logging.getLogger(__name__)

        self.connections = ObservableList()
        self.selected_connection = ObservableValue(None)
        self.loading = ObservableValue(False)
        self.error_message = ObservableValue("")

        self._lock = RLock()
        try:
            self._deck = repository.get()
        except TechnicalError as exc:
            self.notifier.notify_error(exc)
            self._deck = Deck()
        self._refresh()

        self.subscriber = (
            bus.subscribe("connection-viewmodel")
            .on(is_one_of(*(t.as_success() for t in _DECK_EVENTS)), self._on_success)
            .on(is_one_of(*(t.as_failure() for t in _DECK_EVENTS)), self._on_failure)
            .listen_with_workers(1)
        )

        self._publish(SelectEvent(self._deck, self._deck.selected_connection, None))

    @property
    def deck(self) -> Deck:
        return self._deck

    def is_read_only(self) -> bool:
        """Read-only flag of the selected connection; False when none is selected."""
        with self._lock:
            conn = self._deck.selected_connection
            return conn is not None and conn.read_only

    def create(self, name: str, access_key: str, secret_key: str, bucket: str, **options) -> Connection:
        """
        Add a connection to the deck.

        Args:
            name: Display name
            access_key: Access key id
            secret_key: Secret access key
            bucket: Bucket to browse
            **options: aws_region, s3_like_server, use_tls, read_only

        Returns:
            The new connection
        """
        with self._lock:
            evt = self._guard(lambda: self._deck.create(name, access_key, secret_key, bucket, **options))
        self._publish(evt)
        return evt.connection

    def update(self, connection_id: ConnectionID, **changes) -> Connection:
        """Apply *changes* (see ``Deck.update``) to a connection."""
        with self._lock:
            evt = self._guard(lambda: self._deck.update(connection_id, **changes))
        if evt.connection.is_same(evt.previous):
            self.logger.debug(f"Update of connection {connection_id} changed nothing")
            return evt.connection
        self._publish(evt)
        return evt.connection

    def delete(self, connection_id: ConnectionID):
        with self._lock:
            evt = self._guard(lambda: self._deck.remove_a_connection(connection_id))
        self._publish(evt)

    def select(self, connection_id: ConnectionID):
        with self._lock:
            evt = self._guard(lambda: self._deck.select(connection_id))
        self._publish(evt)

    def export_as_json(self, writer: IO[str]):
        """
        Write the persisted deck to *writer*.

        Raises:
            TechnicalError: If the export fails
        """
        self._guard(lambda: self.repository.export(writer))
        self.logger.info("Exported connections as JSON")

    def _guard(self, operation):
        try:
            return operation()
        except S3BoxError as exc:
            self.notifier.notify_error(exc)
            raise

    def _publish(self, evt: Event):
        self.loading.set(True)
        self._refresh()
        self.bus.publish(evt)

    def _refresh(self):
        with self._lock:
            connections = self._deck.get()
            selected = self._deck.selected_connection
        self.connections.set([c.copy() for c in connections])
        self.selected_connection.set(selected.copy() if selected is not None else None)

    def _on_success(self, evt: Event):
        self.loading.set(False)
        self.error_message.set("")
        self._refresh()

    def _on_failure(self, evt: Event):
        with self._lock:
            self._deck.notify(evt)
        self.logger.warning(f"Rolled back {evt.type}: {evt.error}")
        self.notifier.notify_error(evt.error)
        self.loading.set(False)
        self.error_message.set(str(evt.error))
        self._refresh()
