"""Connection deck storage in the preference store."""
import json
import logging
import uuid
from typing import IO, Optional

from s3box.core.deck import (
    CREATE_EVENT,
    NIL_CONNECTION_ID,
    REMOVE_EVENT,
    SELECT_EVENT,
    UPDATE_EVENT,
    Connection,
    ConnectionID,
    CreateEvent,
    CreateFailureEvent,
    CreateSuccessEvent,
    Deck,
    Provider,
    RemoveEvent,
    RemoveFailureEvent,
    RemoveSuccessEvent,
    SelectEvent,
    SelectFailureEvent,
    SelectSuccessEvent,
    UpdateEvent,
    UpdateFailureEvent,
    UpdateSuccessEvent,
)
from s3box.core.events import EventBus, is_
from s3box.services.preferences import ALL_CONNECTIONS_KEY
from s3box.shared.errors import S3BoxError, TechnicalError
from s3box.shared.logging_ import log_event

logger = logging.getLogger(__name__)


def connection_to_dict(conn: Connection, selected: bool) -> dict:
    return {
        "id": str(conn.id),
        "revision": conn.revision,
        "name": conn.name,
        "server": conn.server,
        "accessKey": conn.access_key,
        "secretKey": conn.secret_key,
        "bucket": conn.bucket,
        "selected": selected,
        "region": conn.region,
        "type": conn.provider.value,
        "useTls": conn.use_tls,
        "readOnly": conn.read_only,
    }


def connection_from_dict(item: dict) -> Optional[Connection]:
    """Build a connection from its persisted form; None for a nil id."""
    connection_id = uuid.UUID(str(item.get("id") or NIL_CONNECTION_ID))
    if connection_id == NIL_CONNECTION_ID:
        return None
    use_tls = bool(item.get("useTls", False))
    options = {}
    if Provider.from_string(item.get("type")) == Provider.AWS:
        options["aws_region"] = item.get("region") or None
    else:
        options["s3_like_server"] = item.get("server") or None
        options["use_tls"] = use_tls
        if not options["s3_like_server"]:
            # No endpoint: falls back to the region if one was stored
            options["aws_region"] = item.get("region") or None
    return Connection(
        item.get("name", ""),
        item.get("accessKey", ""),
        item.get("secretKey", ""),
        item.get("bucket", ""),
        read_only=bool(item.get("readOnly", False)),
        revision=int(item.get("revision") or 0),
        connection_id=connection_id,
        **options,
    )


def deck_to_list(deck: Deck) -> list[dict]:
    """Serialize in insertion order, flagging the selected connection."""
    return [connection_to_dict(c, c.id == deck.selected_id) for c in deck.get()]


def deck_from_list(items: list) -> Deck:
    connections: list[Connection] = []
    selected_id: ConnectionID = NIL_CONNECTION_ID
    for item in items:
        conn = connection_from_dict(item)
        if conn is None:
            continue
        if any(c.id == conn.id for c in connections):
            logger.warning(f"Skipping duplicated connection {conn.id}")
            continue
        connections.append(conn)
        if item.get("selected"):
            selected_id = conn.id
    deck = Deck(connections)
    if selected_id != NIL_CONNECTION_ID:
        deck.select(selected_id)
    return deck


class DeckRepository:
    """
    Load / save the connection deck as a JSON array under ``allConnections``.

    A single bus subscription, installed at construction, persists the deck
    on every deck event and publishes exactly one outcome for it.
    """

    def __init__(self, preferences, bus: Optional[EventBus] = None, logger: Optional[logging.Logger] = None):
        self.preferences = preferences
        self.bus = bus
        self.logger = logger or logging.getLogger(__name__)

        if bus is not None:
            self.subscriber = (
                bus.subscribe("deck-repository")
                .on(is_(SELECT_EVENT), self._handle_select)
                .on(is_(CREATE_EVENT), self._handle_create)
                .on(is_(REMOVE_EVENT), self._handle_remove)
                .on(is_(UPDATE_EVENT), self._handle_update)
                .listen_with_workers(1)
            )

    def _load_items(self) -> list:
        content = self.preferences.string(ALL_CONNECTIONS_KEY)
        if content in ("", "null"):
            return []
        data = json.loads(content)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        return data

    def get(self) -> Deck:
        """
        Raises:
            TechnicalError: If the stored deck cannot be read or parsed
        """
        try:
            deck = deck_from_list(self._load_items())
        except (ValueError, TypeError, AttributeError, S3BoxError) as exc:
            raise TechnicalError(f"cannot load connections: {exc}") from exc
        self.logger.info(f"Loaded {len(deck)} connections")
        return deck

    def get_connection(self, connection_id: ConnectionID) -> Connection:
        """Current persisted connection with this id (NotFoundError if absent)."""
        return self.get().get_by_id(connection_id)

    def save(self, deck: Deck):
        """
        Raises:
            TechnicalError: If the deck cannot be serialized or stored
        """
        try:
            content = json.dumps(deck_to_list(deck))
            self.preferences.set_string(ALL_CONNECTIONS_KEY, content)
        except (TypeError, ValueError, OSError) as exc:
            raise TechnicalError(f"cannot save connections: {exc}") from exc
        self.logger.info(f"Saved {len(deck)} connections")

    def export(self, writer: IO[str]):
        """
        Write the persisted deck as JSON to *writer*.

        Raises:
            TechnicalError: If reading, serializing or writing fails
        """
        deck = self.get()
        try:
            writer.write(json.dumps(deck_to_list(deck), indent=2, ensure_ascii=False))
        except (TypeError, ValueError, OSError) as exc:
            raise TechnicalError(f"cannot export connections: {exc}") from exc

    # Bus handlers

    def _persist(self, evt) -> Optional[S3BoxError]:
        try:
            self.save(evt.deck)
        except TechnicalError as exc:
            log_event(self.logger, evt.type, "failure",
                      connection_id=getattr(evt.connection, "id", None), error_code=exc.code)
            return exc
        return None

    def _handle_select(self, evt: SelectEvent):
        error = self._persist(evt)
        if error is not None:
            self.bus.publish(SelectFailureEvent(evt.connection, evt.previous, error=error, ctx=evt.ctx))
            return
        self.bus.publish(SelectSuccessEvent(evt.deck, evt.connection, ctx=evt.ctx))

    def _handle_create(self, evt: CreateEvent):
        error = self._persist(evt)
        if error is not None:
            self.bus.publish(CreateFailureEvent(evt.connection, error=error, ctx=evt.ctx))
            return
        self.bus.publish(CreateSuccessEvent(evt.deck, evt.connection, ctx=evt.ctx))

    def _handle_remove(self, evt: RemoveEvent):
        error = self._persist(evt)
        if error is not None:
            self.bus.publish(RemoveFailureEvent(
                evt.connection, evt.removed_index, evt.was_selected, error=error, ctx=evt.ctx,
            ))
            return
        self.bus.publish(RemoveSuccessEvent(evt.deck, evt.connection, ctx=evt.ctx))

    def _handle_update(self, evt: UpdateEvent):
        error = self._persist(evt)
        if error is not None:
            self.bus.publish(UpdateFailureEvent(evt.previous, error=error, ctx=evt.ctx))
            return
        self.bus.publish(UpdateSuccessEvent(evt.deck, evt.connection, ctx=evt.ctx))
