"""Notification list view-model."""
import logging
import threading
from queue import Empty, Queue
from typing import Optional

from s3box.ui.bindings import DEFAULT_LIST_CAPACITY, ObservableList

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05


class NotificationViewModel:
    """Newest-first list of ``"<Level>: <message>"`` lines."""

    def __init__(
        self,
        notifier,
        done: Optional[threading.Event] = None,
        capacity: int = DEFAULT_LIST_CAPACITY,
        logger: Optional[logging.Logger] = None
    ):
        self.notifier = notifier
        self.done = done or threading.Event()
        self.logger = logger or logging.getLogger(__name__)
        self.notifications = ObservableList(capacity=capacity)

        self._channel: Queue = Queue(maxsize=capacity)
        self._stopped = threading.Event()
        notifier.subscribe(self._channel)
        self._thread = threading.Thread(target=self._listen, daemon=True, name="notification-listener")
        self._thread.start()

    def close(self):
        self._stopped.set()
        self.notifier.unsubscribe(self._channel)

    def _listen(self):
        while not (self.done.is_set() or self._stopped.is_set()):
            try:
                notification = self._channel.get(timeout=_POLL_SECONDS)
            except Empty:
                continue
            self.notifications.prepend(str(notification))
        self.logger.debug("Notification listener stopped")
