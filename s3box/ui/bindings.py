"""Thread-safe observable values for view-model/widget bindings.

View-models update these from bus listener threads; widgets connect to
the ``changed`` signals (queued across threads by Qt).
"""
from threading import RLock
from typing import Any, Generic, Optional, TypeVar

from PySide6.QtCore import QObject, Signal

T = TypeVar("T")

DEFAULT_LIST_CAPACITY = 100


class ObservableValue(QObject, Generic[T]):
    """A single string/bool/number cell."""

    changed = Signal(object)

    def __init__(self, value: Optional[T] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._value = value
        self._lock = RLock()

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T):
        with self._lock:
            if self._value == value:
                return
            self._value = value
        self.changed.emit(value)


class ObservableList(QObject, Generic[T]):
    """An ordered list; ``prepend`` drops the oldest items past capacity."""

    changed = Signal()

    def __init__(self, items=None, capacity: Optional[int] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.capacity = capacity
        self._items: list[T] = list(items or [])
        self._lock = RLock()

    def get(self) -> list[T]:
        with self._lock:
            return list(self._items)

    def set(self, items):
        with self._lock:
            self._items = list(items)
        self.changed.emit()

    def append(self, item: T):
        with self._lock:
            self._items.append(item)
        self.changed.emit()

    def prepend(self, item: T):
        with self._lock:
            self._items.insert(0, item)
            if self.capacity is not None:
                del self._items[self.capacity:]
        self.changed.emit()

    def remove(self, item: T) -> bool:
        with self._lock:
            if item not in self._items:
                return False
            self._items.remove(item)
        self.changed.emit()
        return True

    def clear(self):
        self.set([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class ObservableTree(QObject):
    """
    Parent -> children map of nodes keyed by id.

    The root is stored under the parent id "".
    """

    changed = Signal()

    ROOT_PARENT = ""

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._nodes: dict[str, Any] = {}
        self._children: dict[str, list[str]] = {}
        self._lock = RLock()

    def get(self, node_id: str) -> Optional[Any]:
        with self._lock:
            return self._nodes.get(node_id)

    def children(self, node_id: str) -> list[Any]:
        with self._lock:
            return [self._nodes[i] for i in self._children.get(node_id, [])]

    def child_ids(self, node_id: str) -> list[str]:
        with self._lock:
            return list(self._children.get(node_id, []))

    def roots(self) -> list[Any]:
        return self.children(self.ROOT_PARENT)

    def __contains__(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def _add(self, parent_id: str, node_id: str, node: Any):
        if node_id in self._nodes:
            self._nodes[node_id] = node
            return
        self._nodes[node_id] = node
        self._children.setdefault(parent_id, []).append(node_id)

    def add(self, parent_id: str, node_id: str, node: Any):
        """Insert *node* under *parent_id*, replacing a node with the same id."""
        with self._lock:
            self._add(parent_id, node_id, node)
        self.changed.emit()

    def set_children(self, parent_id: str, children: list[tuple[str, Any]]):
        """Replace every child of *parent_id* (and their subtrees)."""
        with self._lock:
            for child_id in self._children.get(parent_id, []):
                self._drop(child_id)
            self._children[parent_id] = []
            for node_id, node in children:
                self._add(parent_id, node_id, node)
        self.changed.emit()

    def _drop(self, node_id: str):
        for child_id in self._children.pop(node_id, []):
            self._drop(child_id)
        self._nodes.pop(node_id, None)

    def remove(self, node_id: str) -> bool:
        """Remove a node and its subtree."""
        with self._lock:
            if node_id not in self._nodes:
                return False
            for ids in self._children.values():
                if node_id in ids:
                    ids.remove(node_id)
                    break
            self._drop(node_id)
        self.changed.emit()
        return True

    def clear(self):
        with self._lock:
            self._nodes.clear()
            self._children.clear()
        self.changed.emit()
