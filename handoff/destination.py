"""Append-only collection shared by every consumer."""

from __future__ import annotations

import threading
from typing import Any, Iterator, List


class Destination:
    """
    Ordered sink guarded by its own lock, independent of the buffer's lock.

    Appends from different consumers may interleave arbitrarily, but each
    consumer's own appends keep the order in which it took them.
    """

    def __init__(self) -> None:
        self._items: List[Any] = []
        self._lock = threading.Lock()

    def append(self, item: Any) -> int:
        """Append ``item`` and return the new length."""
        with self._lock:
            self._items.append(item)
            return len(self._items)

    def snapshot(self) -> List[Any]:
        """Return a copy of the stored items."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.snapshot())
