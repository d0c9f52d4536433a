"""Bot runtime state (sync session, command metrics, list pages)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from ..session import SyncSession
from .metrics import CommandMetrics

logger = logging.getLogger(__name__)


@dataclass
class BotState:
    """Runtime state shared by all handlers of one Application."""

    session: SyncSession | None = None
    command_metrics: dict[str, CommandMetrics] = field(default_factory=dict)

    # Page of the last /list each chat looked at
    list_pages: dict[int, int] = field(default_factory=dict)

    def metrics_for(self, name: str) -> CommandMetrics:
        return self.command_metrics.setdefault(name, CommandMetrics())

    def record_command(
        self, name: str, latency_s: float, ok: bool, error_msg: str | None
    ) -> None:
        metrics = self.metrics_for(name)
        metrics.count += 1
        metrics.last_run_ts = time.time()
        if ok:
            metrics.success += 1
        else:
            metrics.error += 1
            metrics.last_error = error_msg
        metrics.add_sample(latency_s)

    def record_rate_limited(self, name: str) -> None:
        metrics = self.metrics_for(name)
        metrics.rate_limited += 1


BOT_STATE_KEY = "state"
