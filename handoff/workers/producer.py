"""
Drains a finite input sequence into the shared buffer, one item at a time.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from handoff.buffer import BoundedBuffer
from handoff.models import WorkerState
from handoff.telemetry.metrics import Metrics
from handoff.workers.base import Worker

logger = logging.getLogger(__name__)

_DONE = object()


class Producer(Worker):
    """
    Iterates ``source`` exactly once, in order, calling ``buffer.put`` for
    each element. The stop flag is checked before the next element is pulled,
    so a stop ends production without consuming more of the input. An
    element already pulled is still put.

    A producer parked in a full buffer only sees ``stop()`` once that put
    returns.
    """

    role = "producer"

    def __init__(
        self,
        wid: int,
        buffer: BoundedBuffer,
        source: Iterable[Any],
        metrics: Optional[Metrics] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(wid, buffer, metrics, delay)
        self.source = source
        self.produced = 0

    @property
    def items(self) -> int:
        return self.produced

    def _loop(self) -> WorkerState:
        it = iter(self.source)
        while True:
            if self._stop_event.is_set():
                logger.debug("%s received STOP after %d item(s)", self.name, self.produced)
                return WorkerState.STOPPED

            item = next(it, _DONE)
            if item is _DONE:
                return WorkerState.FINISHED

            self.buffer.put(item)
            self.produced += 1
            if self.metrics is not None:
                self.metrics.inc("items_produced")
            logger.debug(
                "%s produced %r | buffer size: %d",
                self.name, item, self.buffer.size(),
            )
            self._pause()
