"""Fan-out of user-visible notifications."""
import logging
from queue import Full, Queue
from threading import Lock
from typing import Optional

from s3box.shared.models import Level, Notification

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.ERROR: logging.ERROR,
}


class NotificationPublisher:
    """
    Publish notifications to subscriber queues.

    Notifications strictly less severe than ``level`` are suppressed.
    Delivery never blocks: a full subscriber queue misses the message.
    """

    def __init__(self, level: Level = Level.INFO, logger: Optional[logging.Logger] = None):
        self.level = level
        self.logger = logger or logging.getLogger(__name__)
        self._subscribers: list[Queue] = []
        self._lock = Lock()

    def subscribe(self, channel: Queue):
        with self._lock:
            if channel not in self._subscribers:
                self._subscribers.append(channel)

    def unsubscribe(self, channel: Queue):
        with self._lock:
            if channel in self._subscribers:
                self._subscribers.remove(channel)

    def notify(self, notification: Notification):
        self.logger.log(_LOG_LEVELS[notification.level], f"Notification: {notification}")
        if not notification.level.at_least(self.level):
            return
        with self._lock:
            subscribers = list(self._subscribers)
        for channel in subscribers:
            try:
                channel.put_nowait(notification)
            except Full:
                self.logger.debug("Notification dropped, subscriber queue full")

    def notify_error(self, error: BaseException) -> BaseException:
        """Publish *error* at ERROR level and hand it back to the caller."""
        self.notify(Notification(Level.ERROR, error))
        return error

    def notify_info(self, message: str):
        self.notify(Notification(Level.INFO, message))

    def notify_debug(self, message: str):
        self.notify(Notification(Level.DEBUG, message))
