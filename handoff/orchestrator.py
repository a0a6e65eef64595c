"""Wires producers and consumers to one buffer and runs the sentinel hand-off."""

from __future__ import annotations

import logging
import threading
from time import monotonic, perf_counter
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from handoff.buffer import BoundedBuffer
from handoff.config import Config, initialize_environment
from handoff.constants import (
    DEFAULT_CAPACITY,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_SENTINEL,
    JOIN_POLL_INTERVAL,
    SENTINEL_OFFER_TIMEOUT,
)
from handoff.destination import Destination
from handoff.errors import ConfigurationError
from handoff.models import TransferResult
from handoff.sources import make_sources
from handoff.telemetry.metrics import Metrics
from handoff.workers import Consumer, Producer, Worker

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Runs N producers and M consumers against one :class:`BoundedBuffer`.

    Lifecycle of :meth:`run`:

      1. start every worker on its own thread;
      2. join every producer (finished, stopped, interrupted or failed);
      3. enqueue exactly one sentinel per consumer;
      4. join every consumer.

    The full sentinel quota is sent even when workers were stopped early, so
    no consumer is left polling forever. Unfinished production is not retried.
    With ``join_timeout`` set, a worker that outlives it is stopped and
    interrupted instead of being waited on.
    """

    def __init__(
        self,
        producers: Sequence[Producer],
        consumers: Sequence[Consumer],
        buffer: BoundedBuffer,
        sentinel: Any = DEFAULT_SENTINEL,
        *,
        join_timeout: Optional[float] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        """Validate the wiring of an already constructed set of workers.

        Parameters
        ----------
        producers, consumers:
            Workers sharing ``buffer``. At least one consumer is required.
        buffer:
            The single buffer all workers hand items through.
        sentinel:
            Poison pill; must equal every consumer's sentinel.
        join_timeout:
            Per-thread join limit in seconds. ``None`` waits indefinitely.
        metrics:
            Collector receiving orchestration counters.
        """
        if not consumers:
            raise ConfigurationError("at least one consumer is required")
        if join_timeout is not None and join_timeout <= 0:
            raise ConfigurationError(f"join_timeout must be > 0, got {join_timeout!r}")
        for w in [*producers, *consumers]:
            if w.buffer is not buffer:
                raise ConfigurationError(f"{w.name} is wired to a different buffer")
        for c in consumers:
            if c.sentinel != sentinel:
                raise ConfigurationError(
                    f"{c.name} expects sentinel {c.sentinel!r}, orchestrator sends {sentinel!r}")
        destinations = {id(c.destination) for c in consumers}
        if len(destinations) != 1:
            raise ConfigurationError("all consumers must share one destination")

        self.producers: List[Producer] = list(producers)
        self.consumers: List[Consumer] = list(consumers)
        self.buffer = buffer
        self.sentinel = sentinel
        self.destination: Destination = self.consumers[0].destination
        self.join_timeout = join_timeout
        self.metrics = metrics
        self._started = False
        self._lock = threading.Lock()
        self._stopping = False
        self._producers_done = False

    @classmethod
    def build(
        cls,
        sources: Iterable[Iterable[Any]],
        consumers: int,
        capacity: int = DEFAULT_CAPACITY,
        sentinel: Any = DEFAULT_SENTINEL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        *,
        destination: Optional[Destination] = None,
        metrics: Optional[Metrics] = None,
        produce_delay: float = 0.0,
        consume_delay: float = 0.0,
        join_timeout: Optional[float] = None,
    ) -> "Orchestrator":
        """Construct one buffer, a producer per source and ``consumers`` consumers."""
        if consumers <= 0:
            raise ConfigurationError(f"consumers must be > 0, got {consumers!r}")
        buffer = BoundedBuffer(capacity, metrics=metrics)
        destination = destination if destination is not None else Destination()
        producers = [
            Producer(i + 1, buffer, src, metrics=metrics, delay=produce_delay)
            for i, src in enumerate(sources)
        ]
        consumer_list = [
            Consumer(
                i + 1, buffer, destination,
                sentinel=sentinel, poll_timeout=poll_timeout,
                metrics=metrics, delay=consume_delay,
            )
            for i in range(consumers)
        ]
        return cls(
            producers, consumer_list, buffer, sentinel,
            join_timeout=join_timeout, metrics=metrics,
        )

    @property
    def workers(self) -> List[Worker]:
        return [*self.producers, *self.consumers]

    def _spawn(self, worker: Worker) -> threading.Thread:
        t = threading.Thread(target=worker.run, name=worker.name, daemon=True)
        t.start()
        return t

    def _deadline(self) -> Optional[float]:
        return None if self.join_timeout is None else monotonic() + self.join_timeout

    @staticmethod
    def _abort_worker(worker: Worker) -> None:
        worker.stop()
        worker.interrupt()

    def _join_producers(
        self,
        producer_threads: List[threading.Thread],
        consumer_threads: List[threading.Thread],
    ) -> None:
        """Wait for every producer to exit.

        A producer parked on a full buffer with no live consumer left, or one
        that outlives ``join_timeout``, is stopped and interrupted. Once that
        happens it can no longer put, so sentinels sent afterwards are the
        last items in the buffer.
        """
        for p, t in zip(self.producers, producer_threads):
            deadline = self._deadline()
            while t.is_alive():
                t.join(JOIN_POLL_INTERVAL)
                if not t.is_alive():
                    break
                if not any(c.is_alive() for c in consumer_threads):
                    logger.warning("%s has no live consumer left; interrupting it", p.name)
                elif deadline is not None and monotonic() >= deadline:
                    logger.warning(
                        "%s still running after %.1fs join timeout; interrupting it",
                        p.name, self.join_timeout,
                    )
                else:
                    continue
                self._abort_worker(p)
                t.join(self.join_timeout)
                if t.is_alive():
                    logger.warning("%s did not exit after interrupt", p.name)
                break

    def _join_consumers(self, consumer_threads: List[threading.Thread]) -> None:
        for c, t in zip(self.consumers, consumer_threads):
            t.join(self.join_timeout)
            if t.is_alive():
                logger.warning(
                    "%s still running after %.1fs join timeout; interrupting it",
                    c.name, self.join_timeout,
                )
                self._abort_worker(c)
                t.join(self.join_timeout)
                if t.is_alive():
                    logger.warning("%s did not exit after interrupt", c.name)

    def _send_sentinels(self, consumer_threads: List[threading.Thread]) -> int:
        quota = len(self.consumers)
        deadline = self._deadline()
        sent = 0
        while sent < quota:
            if self.buffer.offer(self.sentinel, SENTINEL_OFFER_TIMEOUT):
                sent += 1
                continue
            # buffer stayed full: give up if nobody is left to drain it
            if not any(t.is_alive() for t in consumer_threads):
                logger.warning(
                    "All consumers exited; %d of %d sentinel(s) not delivered",
                    quota - sent, quota,
                )
                break
            if deadline is not None and monotonic() >= deadline:
                logger.warning(
                    "Buffer still full after %.1fs join timeout; "
                    "%d of %d sentinel(s) not delivered, interrupting consumers",
                    self.join_timeout, quota - sent, quota,
                )
                for c in self.consumers:
                    self._abort_worker(c)
                break

        if self.metrics is not None:
            self.metrics.inc("sentinels_sent", sent)
        return sent

    def run(self) -> TransferResult:
        """Start all workers, perform the sentinel hand-off, and wait for completion."""
        if self._started:
            raise RuntimeError("orchestrator can only run once")
        self._started = True

        start = perf_counter()
        logger.info(
            "Starting %d producer(s) and %d consumer(s) on %r",
            len(self.producers), len(self.consumers), self.buffer,
        )
        try:
            producer_threads = [self._spawn(p) for p in self.producers]
            consumer_threads = [self._spawn(c) for c in self.consumers]

            self._join_producers(producer_threads, consumer_threads)
            with self._lock:
                self._producers_done = True
                stopping = self._stopping
            if stopping:
                self._stop_consumers()
            logger.info("Producers done; signalling %d consumer(s)", len(self.consumers))
            sent = self._send_sentinels(consumer_threads)

            self._join_consumers(consumer_threads)
        except KeyboardInterrupt:
            logger.warning("Interrupted; aborting workers")
            self.abort()
            raise

        result = TransferResult(
            destination=self.destination.snapshot(),
            producers=[p.report() for p in self.producers],
            consumers=[c.report() for c in self.consumers],
            sentinels_sent=sent,
            leftover=self.buffer.size(),
            duration=perf_counter() - start,
        )
        logger.info(
            "Transfer %s: %d item(s) in %.3fs (leftover=%d)",
            "completed" if result.complete else "ended early",
            len(result.destination), result.duration, result.leftover,
        )
        return result

    def _stop_consumers(self) -> None:
        for c in self.consumers:
            c.stop()

    def stop(self) -> None:
        """Cooperatively stop the transfer; blocked calls are not interrupted.

        Producers are stopped at once. Consumers keep draining the buffer
        until every producer has exited and are stopped only then, so a
        producer parked on a full buffer is always released.
        """
        with self._lock:
            self._stopping = True
            producers_done = self._producers_done
        for p in self.producers:
            p.stop()
        if producers_done:
            self._stop_consumers()

    def abort(self) -> None:
        """Stop every worker and interrupt any blocking buffer call."""
        for w in self.workers:
            self._abort_worker(w)


def run_transfer(
    config: Config | None = None,
    metrics: Metrics | None = None,
) -> Tuple[TransferResult, Metrics]:
    """Execute a demo transfer and return its result and metrics.

    Parameters
    ----------
    config:
        Optional :class:`Config` instance. If ``None``, environment variables
        are loaded via :func:`initialize_environment`.
    metrics:
        Optional collector; a fresh one is created if omitted.
    """
    if config is None:
        config = initialize_environment()
    else:
        config.validate()
    if metrics is None:
        metrics = Metrics()

    sources = make_sources(config.producers, config.items_per_producer, config.sentinel)
    orchestrator = Orchestrator.build(
        sources,
        config.consumers,
        capacity=config.capacity,
        sentinel=config.sentinel,
        poll_timeout=config.poll_timeout,
        metrics=metrics,
        produce_delay=config.produce_delay,
        consume_delay=config.consume_delay,
        join_timeout=config.join_timeout,
    )
    result = orchestrator.run()

    txt, _ = metrics.summary()
    logger.info("\n%s", txt)
    return result, metrics
