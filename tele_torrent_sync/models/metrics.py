"""Per-command metrics recorded by the rate-limit wrapper."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

MAX_LATENCY_SAMPLES = 200


@dataclass
class CommandMetrics:
    count: int = 0
    success: int = 0
    error: int = 0
    rate_limited: int = 0
    total_latency_s: float = 0.0
    max_latency_s: float = 0.0
    latencies_s: list[float] = field(default_factory=list)
    last_error: str | None = None
    last_run_ts: float | None = None

    @property
    def avg_latency_s(self) -> float:
        return (self.total_latency_s / self.count) if self.count else 0.0

    @property
    def p95_latency_s(self) -> float:
        if not self.latencies_s:
            return 0.0
        ordered = sorted(self.latencies_s)
        idx = max(0, math.ceil(0.95 * len(ordered)) - 1)
        return ordered[idx]

    def add_sample(self, latency_s: float) -> None:
        self.total_latency_s += latency_s
        self.max_latency_s = max(self.max_latency_s, latency_s)
        self.latencies_s.append(latency_s)
        if len(self.latencies_s) > MAX_LATENCY_SAMPLES:
            self.latencies_s.pop(0)
