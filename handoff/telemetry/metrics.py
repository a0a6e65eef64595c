from __future__ import annotations

import threading
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Iterable, Tuple


def _percentile(sorted_values: List[float], p: float) -> float:
    if not sorted_values:
        return float("nan")
    k = (len(sorted_values) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d0 = sorted_values[f] * (c - k)
    d1 = sorted_values[c] * (k - f)
    return d0 + d1


def pct_summary(values: Iterable[float]) -> Dict[str, float]:
    vals = sorted(v for v in values if v is not None)
    if not vals:
        return {"count": 0, "min": float("nan"), "p50": float("nan"),
                "p95": float("nan"), "p99": float("nan"), "max": float("nan")}
    return {
        "count": len(vals),
        "min": vals[0],
        "p50": _percentile(vals, 50),
        "p95": _percentile(vals, 95),
        "p99": _percentile(vals, 99),
        "max": vals[-1],
    }


@dataclass
class Metrics:
    lock: threading.Lock = field(default_factory=threading.Lock)

    items_produced: int = 0
    items_consumed: int = 0
    sentinels_sent: int = 0
    sentinels_received: int = 0

    workers_stopped: int = 0
    workers_interrupted: int = 0
    workers_failed: int = 0

    # highest buffer occupancy ever observed right after a put
    buffer_high_water: int = 0

    # stage -> list of durations ("put_wait", "take_wait", "producer", ...)
    stage_durations: Dict[str, List[float]] = field(
        default_factory=lambda: defaultdict(list))

    # error classification
    errors_by_type: Counter[str] = field(default_factory=Counter)

    def inc(self, attr: str, value: int = 1) -> None:
        with self.lock:
            setattr(self, attr, getattr(self, attr) + value)

    def observe_size(self, size: int) -> None:
        with self.lock:
            if size > self.buffer_high_water:
                self.buffer_high_water = size

    def observe_stage(self, stage: str, duration: float) -> None:
        with self.lock:
            self.stage_durations[stage].append(duration)

    def record_error(self, exc: BaseException) -> None:
        with self.lock:
            self.errors_by_type[type(exc).__name__] += 1

    def summary(self) -> Tuple[str, Dict]:
        with self.lock:
            stage_stats = {
                stage: pct_summary(durations)
                for stage, durations in self.stage_durations.items()
            }
            res = {
                "items_produced": self.items_produced,
                "items_consumed": self.items_consumed,
                "sentinels_sent": self.sentinels_sent,
                "sentinels_received": self.sentinels_received,
                "workers_stopped": self.workers_stopped,
                "workers_interrupted": self.workers_interrupted,
                "workers_failed": self.workers_failed,
                "buffer_high_water": self.buffer_high_water,
                "stage_stats": stage_stats,
                "errors_by_type": dict(self.errors_by_type),
            }

        lines = []
        lines.append("===== METRICS SUMMARY =====")
        lines.append(f"Items      : produced={res['items_produced']}  "
                     f"consumed={res['items_consumed']}")
        lines.append(f"Sentinels  : sent={res['sentinels_sent']}  "
                     f"received={res['sentinels_received']}")
        lines.append(f"Workers    : stopped={res['workers_stopped']}  "
                     f"interrupted={res['workers_interrupted']}  "
                     f"failed={res['workers_failed']}")
        lines.append(f"Buffer     : high_water={res['buffer_high_water']}")
        if stage_stats:
            lines.append("")
            lines.append("Per-stage timings (seconds):")
            for stage, stats in stage_stats.items():
                lines.append(
                    f"  {stage:20s} "
                    f"count={stats['count']:6d}  "
                    f"min={stats['min']:.4f}  p50={stats['p50']:.4f}  "
                    f"p95={stats['p95']:.4f}  p99={stats['p99']:.4f}  max={stats['max']:.4f}"
                )
        if res["errors_by_type"]:
            lines.append("")
            lines.append("Errors by type:")
            for k, v in sorted(res["errors_by_type"].items(), key=lambda kv: kv[1], reverse=True):
                lines.append(f"  {k}: {v}")

        return "\n".join(lines), res

    def stage_percentile(self, stage: str, p: float) -> float:
        with self.lock:
            vals = self.stage_durations.get(stage, [])
            if not vals:
                return float("nan")
            sorted_vals = sorted(vals)
            return _percentile(sorted_vals, p)
