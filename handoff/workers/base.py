from __future__ import annotations

import logging
import threading
from time import perf_counter
from typing import Optional

from handoff.buffer import BoundedBuffer
from handoff.errors import ConfigurationError, WaitInterrupted
from handoff.models import WorkerReport, WorkerState
from handoff.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


class Worker:
    """
    Common plumbing for producer and consumer roles.

    The stop flag is the only state meant to be changed from other threads;
    it is polled by :meth:`run` at well-defined points and never interrupts a
    blocking buffer call. :meth:`interrupt` is the forcible counterpart.
    """

    role = "worker"

    def __init__(
        self,
        wid: int,
        buffer: BoundedBuffer,
        metrics: Optional[Metrics] = None,
        delay: float = 0.0,
    ) -> None:
        if delay < 0:
            raise ConfigurationError(f"delay must be >= 0, got {delay!r}")
        self.wid = wid
        self.buffer = buffer
        self.metrics = metrics
        self.delay = delay
        self.state = WorkerState.CREATED
        self.error: str | None = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return f"{self.role}-{self.wid}"

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def items(self) -> int:
        raise NotImplementedError

    def stop(self) -> None:
        """Ask the worker to halt at its next poll point."""
        self._stop_event.set()

    def interrupt(self) -> None:
        """Abort a blocking buffer call the worker is currently parked in."""
        if self._thread is not None and not self.state.terminal:
            self.buffer.interrupt(self._thread)

    def report(self) -> WorkerReport:
        return WorkerReport(self.wid, self.role, self.state, self.items, self.error)

    def _pause(self) -> None:
        # simulated per-item work; returns early on stop()
        if self.delay > 0:
            self._stop_event.wait(self.delay)

    def _loop(self) -> WorkerState:
        raise NotImplementedError

    def run(self) -> WorkerReport:
        """Run the worker loop on the calling thread until a terminal state."""
        if self.state is not WorkerState.CREATED:
            raise RuntimeError(f"{self.name} already ran (state={self.state.value})")
        self._thread = threading.current_thread()
        self.state = WorkerState.RUNNING
        logger.debug("%s started", self.name)
        start = perf_counter()
        try:
            self.state = self._loop()
        except WaitInterrupted as exc:
            self.state = WorkerState.INTERRUPTED
            self.error = str(exc)
            logger.warning("%s interrupted while waiting on %s", self.name, self.buffer.name)
        except Exception as exc:
            self.state = WorkerState.FAILED
            self.error = f"{type(exc).__name__}: {exc}"
            if self.metrics is not None:
                self.metrics.record_error(exc)
            logger.exception("%s failed after %d item(s): %s", self.name, self.items, exc)
        finally:
            self.buffer.clear_interrupt()
            if self.metrics is not None:
                self.metrics.observe_stage(self.role, perf_counter() - start)
                if self.state is WorkerState.STOPPED:
                    self.metrics.inc("workers_stopped")
                elif self.state is WorkerState.INTERRUPTED:
                    self.metrics.inc("workers_interrupted")
                elif self.state is WorkerState.FAILED:
                    self.metrics.inc("workers_failed")

        logger.info("%s %s (%d item(s))", self.name, self.state.value, self.items)
        return self.report()
