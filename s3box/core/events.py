"""Event bus for decoupled communication between components.

View-models and repositories never call each other directly: a domain
mutation produces an event, the caller publishes it, and whichever
subscriber is responsible reacts and publishes the ``.success`` or
``.failure`` outcome.
"""
import logging
import threading
from dataclasses import dataclass, field
from queue import Empty, Full, Queue
from typing import Callable, ClassVar, Optional, Union

from s3box.core.context import Context
from s3box.shared.logging_ import log_event

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100
DEFAULT_PUBLICATION_WORKERS = 16

# Poll interval for blocking queue operations that must observe shutdown
_POLL_SECONDS = 0.05


class EventType(str):
    """Namespaced event type string (``deck.select``, ``event.file.load``)."""

    __slots__ = ()

    def as_success(self) -> "EventType":
        return EventType(f"{self}.success")

    def as_failure(self) -> "EventType":
        return EventType(f"{self}.failure")

    @property
    def status(self) -> str:
        """"success" or "failure" for outcome types, "request" otherwise."""
        if self.endswith(".success"):
            return "success"
        if self.endswith(".failure"):
            return "failure"
        return "request"


@dataclass(kw_only=True)
class Event:
    """Base event. Concrete events set TYPE and add their payload fields."""

    TYPE: ClassVar[EventType] = EventType("")

    ctx: Context = field(default_factory=Context.background, repr=False, compare=False)

    @property
    def type(self) -> EventType:
        return self.TYPE


@dataclass(kw_only=True)
class GenericEvent(Event):
    """Event carrying only a type; handy for ad-hoc signals."""

    event_type: EventType

    @property
    def type(self) -> EventType:
        return EventType(self.event_type)


@dataclass(kw_only=True)
class ErrorEvent(Event):
    """Mixin for failure events."""

    error: BaseException


# Matchers

@dataclass(frozen=True)
class Is:
    """Matches events of exactly one type."""

    event_type: str

    def match(self, evt: Event) -> bool:
        return evt.type == self.event_type


@dataclass(frozen=True)
class IsOneOf:
    """Matches events whose type is any of the given ones."""

    event_types: tuple[str, ...]

    def match(self, evt: Event) -> bool:
        return evt.type in self.event_types


def is_(event_type: str) -> Is:
    return Is(event_type)


def is_one_of(*event_types: str) -> IsOneOf:
    return IsOneOf(tuple(event_types))


Matcher = Union[Is, IsOneOf]
Callback = Callable[[Event], None]


class Subscriber:
    """
    Per-subscriber dispatch object.

    Callbacks are registered with ``on()`` before listening starts, then
    events drained from the subscriber's channel are dispatched to every
    callback whose matcher accepts them.
    """

    def __init__(
        self,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        name: str = "subscriber",
        logger: Optional[logging.Logger] = None
    ):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self._registered: dict = {}
        self._events: Queue = Queue(maxsize=queue_size)
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self.started = False
        self._worker = 0

    def on(self, matcher: Matcher, callback: Callback) -> "Subscriber":
        """
        Register a callback for the events accepted by *matcher*.

        Registering an equal matcher twice keeps the first callback.

        Raises:
            RuntimeError: If listening already started
        """
        if self.started:
            raise RuntimeError("cannot register callback after listening started")
        if matcher in self._registered:
            return self
        self._registered[matcher] = callback
        return self

    def accept(self, evt: Event) -> bool:
        """Return True if at least one registered matcher accepts *evt*."""
        return any(m.match(evt) for m in self._registered)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> bool:
        """Close the channel. Returns False if it was already closed."""
        with self._close_lock:
            if self._closed.is_set():
                return False
            self._closed.set()
        self.logger.debug(f"Subscriber {self.name} closed")
        return True

    def deliver(self, evt: Event, done: Optional[threading.Event] = None) -> bool:
        """
        Push *evt* onto the channel, blocking while it is full.

        Gives up (and drops the event) once the subscriber is closed or
        *done* is set. Returns True when the event was enqueued.
        """
        while not self._closed.is_set():
            if done is not None and done.is_set():
                return False
            try:
                self._events.put(evt, timeout=_POLL_SECONDS)
                return True
            except Full:
                continue
        return False

    def receive(self, timeout: Optional[float] = None) -> Optional[Event]:
        """
        Take the next event from the channel.

        Returns None when the channel is closed and drained, or when
        *timeout* elapses.
        """
        waited = 0.0
        while True:
            try:
                return self._events.get(timeout=_POLL_SECONDS)
            except Empty:
                if self._closed.is_set():
                    return None
                waited += _POLL_SECONDS
                if timeout is not None and waited >= timeout:
                    return None

    def _dispatch(self, evt: Event, callback: Callback):
        try:
            callback(evt)
        except Exception:
            self.logger.exception(f"Subscriber {self.name} callback failed on {evt.type}")

    def _listen(self):
        while True:
            evt = self.receive()
            if evt is None:
                return
            for matcher, callback in list(self._registered.items()):
                if matcher.match(evt):
                    self._dispatch(evt, callback)

    def _listen_spawning(self):
        while True:
            evt = self.receive()
            if evt is None:
                return
            for matcher, callback in list(self._registered.items()):
                if matcher.match(evt):
                    threading.Thread(
                        target=self._dispatch, args=(evt, callback), daemon=True
                    ).start()

    def listen_with_workers(self, workers: int = 1) -> "Subscriber":
        """
        Start *workers* threads dispatching events synchronously.

        A single worker keeps delivery in publish order.
        """
        self.started = True
        for i in range(workers):
            thread = threading.Thread(
                target=self._listen, daemon=True, name=f"{self.name}-listener-{i}"
            )
            thread.start()
            self._threads.append(thread)
        return self

    def listen_non_blocking(self) -> "Subscriber":
        """Start one reader thread that spawns a thread per matching callback."""
        self.started = True
        thread = threading.Thread(
            target=self._listen_spawning, daemon=True, name=f"{self.name}-listener"
        )
        thread.start()
        self._threads.append(thread)
        return self

    def join(self, timeout: Optional[float] = None):
        for thread in self._threads:
            thread.join(timeout=timeout)


class EventBus:
    """
    Process-wide typed pub/sub.

    Publication goes through a fixed pool of workers, each draining its own
    bounded queue. Every subscriber is pinned to one worker so events reach
    it in publish order. Setting ``done`` closes every subscriber channel
    exactly once and unblocks pending publishes.
    """

    def __init__(
        self,
        done: Optional[threading.Event] = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        workers: int = DEFAULT_PUBLICATION_WORKERS,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the bus and start its workers.

        Args:
            done: Shutdown signal shared with the rest of the application
            queue_size: Capacity of each publication and subscriber queue
            workers: Number of publication workers
            logger: Optional logger instance
        """
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        self.done = done or threading.Event()
        self.queue_size = queue_size
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []
        self._queues: list[Queue] = [Queue(maxsize=queue_size) for _ in range(workers)]

        for i, q in enumerate(self._queues):
            threading.Thread(
                target=self._pub_worker, args=(q,), daemon=True, name=f"bus-worker-{i}"
            ).start()
        threading.Thread(target=self._terminate, daemon=True, name="bus-terminate").start()

    def subscribe(self, name: str = "subscriber") -> Subscriber:
        """Return a fresh subscriber bound to its own channel."""
        subscriber = Subscriber(self.queue_size, name=name, logger=self.logger)
        with self._lock:
            if self.done.is_set():
                subscriber.close()
                return subscriber
            subscriber._worker = len(self._subscribers) % len(self._queues)
            self._subscribers.append(subscriber)
        return subscriber

    def publish(self, evt: Event):
        """Enqueue *evt* for every subscriber. Dropped once ``done`` is set."""
        log_event(
            self.logger,
            evt.type,
            evt.type.status,
            message=str(getattr(evt, "error", "")) or None,
        )
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            if not self._put(self._queues[subscriber._worker], (subscriber, evt)):
                return

    def close(self):
        """Signal shutdown. Idempotent."""
        self.done.set()

    def _put(self, q: Queue, item) -> bool:
        while not self.done.is_set():
            try:
                q.put(item, timeout=_POLL_SECONDS)
                return True
            except Full:
                continue
        return False

    def _pub_worker(self, q: Queue):
        while not self.done.is_set():
            try:
                subscriber, evt = q.get(timeout=_POLL_SECONDS)
            except Empty:
                continue
            subscriber.deliver(evt, self.done)

    def _terminate(self):
        self.done.wait()
        with self._lock:
            subscribers = list(self._subscribers)
        for subscriber in subscribers:
            subscriber.close()
        self.logger.info(f"Event bus stopped, {len(subscribers)} subscribers closed")
