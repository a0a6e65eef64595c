"""
Drains the shared buffer into the destination until a sentinel shows up.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from handoff.buffer import EMPTY, BoundedBuffer
from handoff.constants import DEFAULT_POLL_TIMEOUT, DEFAULT_SENTINEL
from handoff.destination import Destination
from handoff.errors import ConfigurationError
from handoff.models import WorkerState
from handoff.telemetry.metrics import Metrics
from handoff.workers.base import Worker

logger = logging.getLogger(__name__)


class Consumer(Worker):
    """
    Polls the buffer with ``try_take(poll_timeout)`` so a ``stop()`` is seen
    within one poll interval even when no traffic arrives.

    Receiving an item equal to ``sentinel`` is the normal way out: the
    sentinel is not appended and the consumer ends in ``SENTINEL_RECEIVED``.
    A consumer stopped via ``stop()`` may leave items in the buffer.
    """

    role = "consumer"

    def __init__(
        self,
        wid: int,
        buffer: BoundedBuffer,
        destination: Destination,
        sentinel: Any = DEFAULT_SENTINEL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        metrics: Optional[Metrics] = None,
        delay: float = 0.0,
    ) -> None:
        if poll_timeout <= 0:
            raise ConfigurationError(f"poll_timeout must be > 0, got {poll_timeout!r}")
        super().__init__(wid, buffer, metrics, delay)
        self.destination = destination
        self.sentinel = sentinel
        self.poll_timeout = poll_timeout
        self.consumed = 0

    @property
    def items(self) -> int:
        return self.consumed

    def _loop(self) -> WorkerState:
        while not self._stop_event.is_set():
            item = self.buffer.try_take(self.poll_timeout)
            if item is EMPTY:
                continue

            if item == self.sentinel:
                if self.metrics is not None:
                    self.metrics.inc("sentinels_received")
                logger.debug("%s received sentinel, stopping", self.name)
                return WorkerState.SENTINEL_RECEIVED

            total = self.destination.append(item)
            self.consumed += 1
            if self.metrics is not None:
                self.metrics.inc("items_consumed")
            logger.debug(
                "%s consumed %r | destination size: %d",
                self.name, item, total,
            )
            self._pause()

        logger.debug("%s received STOP after %d item(s)", self.name, self.consumed)
        return WorkerState.STOPPED
