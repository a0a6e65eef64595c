"""Fixed-capacity FIFO buffer with blocking put/take shared by all workers."""

from __future__ import annotations

import logging
import threading
from collections import deque
from time import monotonic, perf_counter
from typing import Any, Callable, Deque, Optional, Set

from handoff.errors import ConfigurationError, WaitInterrupted
from handoff.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)

# Returned by try_take() when nothing arrived in time. Never a legal item.
EMPTY: object = object()


class BoundedBuffer:
    """
    Bounded FIFO hand-off between producer and consumer threads.

    One lock guards the item sequence; two conditions share it:
    ``not_full`` (producers wait here) and ``not_empty`` (consumers wait
    here). Waiters re-check their predicate in a loop, and every state change
    wakes *all* waiters on the opposite condition so that no wakeup is lost
    when several producers or consumers are parked on the same condition.

    Items are returned in successful-put order across all producers.
    """

    def __init__(
        self,
        capacity: int,
        name: str = "buffer",
        metrics: Optional[Metrics] = None,
    ) -> None:
        """Create an empty buffer.

        Parameters
        ----------
        capacity:
            Maximum number of buffered items. Must be a positive integer.
        name:
            Label used in log messages.
        metrics:
            Optional collector for wait durations and the occupancy
            high-water mark.
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ConfigurationError(
                f"capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self.name = name
        self._metrics = metrics

        self._items: Deque[Any] = deque()
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)

        # threads whose blocking call must raise WaitInterrupted; keyed on the
        # Thread object because idents are recycled once a thread exits
        self._interrupted: Set[threading.Thread] = set()

    @property
    def capacity(self) -> int:
        return self._capacity

    # ─── producer side ──────────────────────────────────────────────────────
    def put(self, item: Any) -> None:
        """Append ``item``, blocking while the buffer is full."""
        self._put(item, None)

    def offer(self, item: Any, timeout: float) -> bool:
        """Append ``item`` unless the buffer stays full for ``timeout`` seconds.

        Returns ``True`` if the item was appended, ``False`` on timeout.
        """
        return self._put(item, max(0.0, timeout))

    def _put(self, item: Any, timeout: Optional[float]) -> bool:
        deadline = None if timeout is None else monotonic() + timeout
        with self._lock:
            waited = self._await(
                self._not_full,
                lambda: len(self._items) < self._capacity,
                deadline,
                "put",
            )
            if waited is None:
                return False
            self._items.append(item)
            size = len(self._items)
            self._not_empty.notify_all()

        if self._metrics is not None:
            self._metrics.observe_size(size)
            if waited > 0:
                self._metrics.observe_stage("put_wait", waited)
        return True

    # ─── consumer side ──────────────────────────────────────────────────────
    def take(self) -> Any:
        """Remove and return the head item, blocking while the buffer is empty."""
        return self._take(None)

    def try_take(self, timeout: float) -> Any:
        """As :meth:`take`, but return :data:`EMPTY` after ``timeout`` seconds."""
        return self._take(max(0.0, timeout))

    def _take(self, timeout: Optional[float]) -> Any:
        deadline = None if timeout is None else monotonic() + timeout
        with self._lock:
            waited = self._await(
                self._not_empty,
                lambda: len(self._items) > 0,
                deadline,
                "take",
            )
            if waited is None:
                return EMPTY
            item = self._items.popleft()
            self._not_full.notify_all()

        if self._metrics is not None and waited > 0:
            self._metrics.observe_stage("take_wait", waited)
        return item

    # ─── shared ─────────────────────────────────────────────────────────────
    def _await(
        self,
        cond: threading.Condition,
        ready: Callable[[], bool],
        deadline: Optional[float],
        op: str,
    ) -> Optional[float]:
        """Wait on ``cond`` until ``ready()`` holds. Caller holds the lock.

        Returns the seconds spent waiting, or ``None`` if ``deadline`` passed.
        Raises :class:`WaitInterrupted` if the calling thread was interrupted.
        """
        me = threading.current_thread()
        started: Optional[float] = None
        while True:
            if me in self._interrupted:
                self._interrupted.discard(me)
                raise WaitInterrupted(
                    f"{op} on {self.name} interrupted "
                    f"({me.name})")
            if ready():
                return 0.0 if started is None else perf_counter() - started
            if started is None:
                started = perf_counter()
                logger.debug(
                    "%s: %s waiting (%d/%d) [%s]",
                    self.name, op, len(self._items), self._capacity,
                    me.name,
                )
            if deadline is None:
                cond.wait()
            else:
                remaining = deadline - monotonic()
                if remaining <= 0:
                    return None
                cond.wait(remaining)

    def interrupt(self, thread: threading.Thread) -> None:
        """Abort ``thread``'s current or next blocking call on this buffer.

        The call raises :class:`WaitInterrupted`; buffer contents are not
        touched. Threads that are not alive are ignored, and marks left by
        threads that have since exited are dropped.
        """
        if not thread.is_alive():
            return
        with self._lock:
            self._interrupted = {t for t in self._interrupted if t.is_alive()}
            self._interrupted.add(thread)
            self._not_full.notify_all()
            self._not_empty.notify_all()
        logger.debug("%s: interrupt requested for %s", self.name, thread.name)

    def clear_interrupt(self, thread: Optional[threading.Thread] = None) -> None:
        """Drop a pending interrupt for ``thread`` (default: the caller)."""
        if thread is None:
            thread = threading.current_thread()
        with self._lock:
            self._interrupted.discard(thread)

    def size(self) -> int:
        """Point-in-time item count."""
        with self._lock:
            return len(self._items)

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"BoundedBuffer(name={self.name!r}, capacity={self._capacity})"
