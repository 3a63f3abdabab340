"""
Metrics
In-process counters for the admission loop, logged as a summary on shutdown.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging
import statistics
import time

logger = logging.getLogger(__name__)


@dataclass
class Counter:
    """Monotonic counter."""
    value: int = 0

    def inc(self, amount: int = 1):
        self.value += amount

    def reset(self):
        self.value = 0


@dataclass
class Gauge:
    """Last observed value, optionally per label."""
    value: float = 0.0
    labels: Dict[str, float] = field(default_factory=dict)

    def set(self, value: float, label: str = None):
        if label:
            self.labels[label] = value
        else:
            self.value = value

    def get(self, label: str = None) -> float:
        if label:
            return self.labels.get(label, 0.0)
        return self.value


@dataclass
class Histogram:
    """Raw observations with percentile helpers."""
    observations: List[float] = field(default_factory=list)

    def observe(self, value: float):
        self.observations.append(value)

    def count(self) -> int:
        return len(self.observations)

    def percentile(self, q: float) -> float:
        if not self.observations:
            return 0.0
        ordered = sorted(self.observations)
        idx = int(len(ordered) * q)
        return ordered[min(idx, len(ordered) - 1)]

    def p50(self) -> float:
        if not self.observations:
            return 0.0
        return statistics.median(self.observations)

    def p95(self) -> float:
        return self.percentile(0.95)

    def mean(self) -> float:
        if not self.observations:
            return 0.0
        return statistics.mean(self.observations)


class QueueMetrics:
    """Attempt outcomes, gate decisions and timings for one process run."""

    def __init__(self):
        self.attempts = Counter()
        self.confirmed = Counter()
        self.not_confirmed = Counter()
        self.fill_errors = Counter()
        self.rate_limit_hits = Counter()
        self.prompt_reloads = Counter()

        # Keyed by gate decision name ("backoff", "interval", "capacity", ...)
        self.gate_waits = Gauge()
        self.last_capacity = Gauge()

        self.attempt_duration = Histogram()
        self.started_at = datetime.now()

    def record_gate(self, decision: str):
        self.gate_waits.set(self.gate_waits.get(decision) + 1, decision)

    def record_capacity(self, count: int):
        self.last_capacity.set(float(count))

    def record_attempt(self, confirmed: bool, duration_seconds: Optional[float] = None):
        """Count an attempt. Duration is optional when a Timer already observed it."""
        self.attempts.inc()
        if confirmed:
            self.confirmed.inc()
        else:
            self.not_confirmed.inc()
        if duration_seconds is not None:
            self.attempt_duration.observe(duration_seconds)

    def record_fill_error(self):
        self.fill_errors.inc()

    def record_rate_limit(self, total_hits: Optional[int] = None):
        if total_hits is None:
            self.rate_limit_hits.inc()
        else:
            self.rate_limit_hits.value = total_hits

    def record_reload(self):
        self.prompt_reloads.inc()

    def get_summary(self) -> dict:
        return {
            "period_start": self.started_at.isoformat(),
            "attempts": {
                "total": self.attempts.value,
                "confirmed": self.confirmed.value,
                "not_confirmed": self.not_confirmed.value,
                "fill_errors": self.fill_errors.value,
                "success_rate": self.confirmed.value / max(1, self.attempts.value),
            },
            "latency": {
                "attempt_avg": self.attempt_duration.mean(),
                "attempt_p50": self.attempt_duration.p50(),
                "attempt_p95": self.attempt_duration.p95(),
            },
            "gates": dict(self.gate_waits.labels),
            "last_capacity": int(self.last_capacity.get()),
            "safety": {
                "rate_limit_hits": self.rate_limit_hits.value,
                "prompt_reloads": self.prompt_reloads.value,
            },
        }

    def log_summary(self):
        s = self.get_summary()
        a = s["attempts"]
        logger.info(
            f"📊 Attempts: {a['total']} | confirmed: {a['confirmed']} | "
            f"not confirmed: {a['not_confirmed']} | fill errors: {a['fill_errors']} | "
            f"success rate: {a['success_rate']:.0%}"
        )
        logger.info(
            f"📊 Attempt duration avg {s['latency']['attempt_avg']:.1f}s, "
            f"p95 {s['latency']['attempt_p95']:.1f}s | "
            f"rate-limit hits: {s['safety']['rate_limit_hits']} | reloads: {s['safety']['prompt_reloads']} | "
            f"last in progress: {s['last_capacity']}"
        )
        if s["gates"]:
            gates = ", ".join(f"{k}={int(v)}" for k, v in sorted(s["gates"].items()))
            logger.info(f"📊 Gate waits: {gates}")


class Timer:
    """Context manager for timing operations."""

    def __init__(self, histogram: Histogram = None, clock: Callable[[], float] = time.monotonic):
        self.histogram = histogram
        self.clock = clock
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = self.clock()
        return self

    def __exit__(self, *args):
        self.duration = self.clock() - self.start_time
        if self.histogram:
            self.histogram.observe(self.duration)
