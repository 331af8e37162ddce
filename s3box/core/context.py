"""Cancellation and deadline propagation across worker threads."""
import threading
import time
from typing import Optional

from s3box.shared.errors import CancelledError


class Context:
    """
    Cooperative cancellation token with an optional deadline.

    Children are cancelled together with their parent. Work running on a
    thread checks ``raise_if_done()`` at its suspension points.
    """

    def __init__(self, parent: Optional["Context"] = None, deadline: Optional[float] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[Context] = []
        self._reason = "operation cancelled"
        self.parent = parent

        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> "Context":
        """A root context that is never cancelled unless asked to."""
        return cls()

    @classmethod
    def with_cancel(cls, parent: "Context") -> "Context":
        return cls(parent=parent)

    @classmethod
    def with_timeout(cls, parent: "Context", seconds: float) -> "Context":
        return cls(parent=parent, deadline=time.monotonic() + seconds)

    def _attach(self, child: "Context"):
        with self._lock:
            if self._event.is_set():
                child.cancel(self._reason)
                return
            self._children.append(child)

    def _detach(self, child: "Context"):
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def release(self):
        """Detach from the parent once the work bound to this context is over."""
        if self.parent is not None:
            self.parent._detach(self)

    def cancel(self, reason: str = "operation cancelled"):
        """Cancel this context and every child. Idempotent."""
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            children, self._children = self._children, []
        for child in children:
            child.cancel(reason)

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    def done(self) -> bool:
        return self.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled, the deadline passes or *timeout* elapses."""
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def raise_if_done(self):
        """
        Raises:
            CancelledError: If the context was cancelled or timed out
        """
        if self.cancelled:
            raise CancelledError(self._reason)
