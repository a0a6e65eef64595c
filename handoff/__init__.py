"""Public package exports for the :mod:`handoff` library."""

from __future__ import annotations

from handoff.buffer import EMPTY, BoundedBuffer
from handoff.destination import Destination
from handoff.errors import ConfigurationError, WaitInterrupted
from handoff.models import TransferResult, WorkerReport, WorkerState
from handoff.orchestrator import Orchestrator, run_transfer
from handoff.workers import Consumer, Producer

__all__ = [
    "EMPTY",
    "BoundedBuffer",
    "Destination",
    "ConfigurationError",
    "WaitInterrupted",
    "TransferResult",
    "WorkerReport",
    "WorkerState",
    "Orchestrator",
    "run_transfer",
    "Producer",
    "Consumer",
]
