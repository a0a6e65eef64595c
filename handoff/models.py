from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List


class WorkerState(str, enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    # producer terminal states
    FINISHED = "finished"
    # consumer terminal states
    SENTINEL_RECEIVED = "sentinel_received"
    # shared terminal states
    STOPPED = "stopped"
    INTERRUPTED = "interrupted"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self not in (WorkerState.CREATED, WorkerState.RUNNING)


@dataclass
class WorkerReport:
    wid: int
    role: str
    state: WorkerState
    items: int
    error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "wid": self.wid,
            "role": self.role,
            "state": self.state.value,
            "items": self.items,
            "error": self.error,
        }


@dataclass
class TransferResult:
    """Outcome of one orchestrated run: destination snapshot plus per-worker reports."""
    destination: List[Any]
    producers: List[WorkerReport] = field(default_factory=list)
    consumers: List[WorkerReport] = field(default_factory=list)
    sentinels_sent: int = 0
    leftover: int = 0   # items still buffered when the run returned
    duration: float = 0.0

    @property
    def complete(self) -> bool:
        """``True`` when every producer finished and every consumer got its sentinel."""
        return all(r.state is WorkerState.FINISHED for r in self.producers) and all(
            r.state is WorkerState.SENTINEL_RECEIVED for r in self.consumers
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "destination": list(self.destination),
            "producers": [r.as_dict() for r in self.producers],
            "consumers": [r.as_dict() for r in self.consumers],
            "sentinels_sent": self.sentinels_sent,
            "leftover": self.leftover,
            "duration": self.duration,
            "complete": self.complete,
        }
