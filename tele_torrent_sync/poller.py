"""Poller: the authenticate/poll state machine behind the sync session.

States and allowed transitions (`TRANSITIONS`):

    idle -> authenticating        credentials supplied
    authenticating -> polling     login accepted; cursor cleared so the
                                  first poll asks for a full snapshot
    polling -> polling            each successful or failed cycle
    polling -> authenticating     session rejected; cursor and mirror reset
    any -> stopped                teardown or credentials cleared
    stopped -> idle               new credentials after a teardown

`step()` performs exactly one action for the current state, so the machine
can be driven without timers. `start()` runs the same steps in a single
asyncio task, one cycle at a time: the next cycle is only scheduled after
the previous one settled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Mapping

from .cursor import SyncCursor
from .errors import AuthenticationError, TransportError
from .models.delta import DeltaEnvelope
from .models.session_config import SessionConfig
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 5.0
DEFAULT_CATEGORY_EVERY = 6


class PollState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    POLLING = "polling"
    STOPPED = "stopped"


class PollStatus(str, Enum):
    """What consumers are shown; finer grained than `PollState`."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    LIVE = "live"
    TRANSIENT_ERROR = "transient-error"
    AUTH_ERROR = "auth-error"
    STOPPED = "stopped"


TRANSITIONS: dict[PollState, frozenset[PollState]] = {
    PollState.IDLE: frozenset({PollState.AUTHENTICATING, PollState.STOPPED}),
    PollState.AUTHENTICATING: frozenset({PollState.POLLING, PollState.STOPPED}),
    PollState.POLLING: frozenset(
        {PollState.POLLING, PollState.AUTHENTICATING, PollState.STOPPED}
    ),
    PollState.STOPPED: frozenset({PollState.IDLE}),
}


class InvalidTransition(RuntimeError):
    pass


class Poller:
    def __init__(
        self,
        transport: Transport,
        cursor: SyncCursor,
        *,
        on_delta: Callable[[DeltaEnvelope], None],
        on_reset: Callable[[], None],
        on_categories: Callable[[Mapping[str, Mapping[str, Any]]], None] | None = None,
        on_status: Callable[[PollStatus], None] | None = None,
        interval_s: float = DEFAULT_INTERVAL_S,
        category_every: int = DEFAULT_CATEGORY_EVERY,
        config: SessionConfig | None = None,
    ) -> None:
        self._transport = transport
        self._cursor = cursor
        self._on_delta = on_delta
        self._on_reset = on_reset
        self._on_categories = on_categories
        self._on_status = on_status
        self.interval_s = interval_s
        self.category_every = max(0, int(category_every))

        self._state = PollState.IDLE
        self._status = PollStatus.IDLE
        self.last_error: str | None = None
        self._config: SessionConfig | None = None
        # Bumped on every reset/stop; a cycle that started under an older
        # generation must not touch the mirror or the cursor.
        self._generation = 0
        self._cycles = 0
        self._lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._task: asyncio.Task | None = None

        if config is not None:
            self.set_credentials(config)

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def status(self) -> PollStatus:
        return self._status

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _transition(self, new_state: PollState) -> None:
        if new_state not in TRANSITIONS[self._state]:
            raise InvalidTransition(f"{self._state.value} -> {new_state.value}")
        if new_state is not self._state:
            logger.info("Poller %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _set_status(self, status: PollStatus, error: str | None = None) -> None:
        self.last_error = error
        if status is self._status:
            return
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    def _reset_sync(self) -> None:
        self._generation += 1
        self._cycles = 0
        self._cursor.reset()
        self._on_reset()

    def set_credentials(self, config: SessionConfig | None) -> None:
        """Supply new credentials, or clear them with None.

        New credentials always force a fresh login followed by a full
        snapshot. Clearing them stops the poller.
        """
        if config is None or not config.is_complete:
            self._config = None
            if self._state is not PollState.STOPPED:
                self._reset_sync()
                self._transition(PollState.STOPPED)
                self._set_status(PollStatus.STOPPED)
            self._wake.set()
            return

        self._config = config
        self._reset_sync()
        if self._state is PollState.STOPPED:
            self._transition(PollState.IDLE)
        if self._state is not PollState.AUTHENTICATING:
            self._transition(PollState.AUTHENTICATING)
        self._set_status(PollStatus.AUTHENTICATING)
        self._wake.set()

    def request_refresh(self) -> None:
        """Run the next cycle now instead of waiting for the period."""
        if self._state is PollState.POLLING:
            self._wake.set()

    async def authenticate(self) -> bool:
        config = self._config
        if self._state is not PollState.AUTHENTICATING or config is None:
            return False
        if self._status is PollStatus.AUTH_ERROR:
            # Rejected credentials are not retried until new ones arrive.
            return False
        generation = self._generation
        try:
            await self._transport.authenticate(config)
        except AuthenticationError as exc:
            if generation != self._generation:
                return False
            logger.warning("qBittorrent rejected credentials for %s: %s", config.base_url, exc)
            self._set_status(PollStatus.AUTH_ERROR, str(exc))
            return False
        except TransportError as exc:
            if generation != self._generation:
                return False
            logger.warning("Login to %s failed: %s", config.base_url, exc)
            self._set_status(PollStatus.TRANSIENT_ERROR, str(exc))
            return False
        if generation != self._generation or self._state is not PollState.AUTHENTICATING:
            return False
        self._reset_sync()
        self._transition(PollState.POLLING)
        return True

    def _session_rejected(self, exc: AuthenticationError) -> None:
        logger.warning("Session rejected by qBittorrent; re-authenticating: %s", exc)
        self._reset_sync()
        self._transition(PollState.AUTHENTICATING)
        self._set_status(PollStatus.AUTHENTICATING, str(exc))

    async def poll_once(self) -> bool:
        """Fetch one delta, reconcile it, then advance the cursor."""
        if self._state is not PollState.POLLING:
            return False
        async with self._lock:
            generation = self._generation
            cursor = self._cursor.read()
            try:
                envelope = await self._transport.fetch_delta(cursor)
            except AuthenticationError as exc:
                if generation == self._generation:
                    self._session_rejected(exc)
                return False
            except TransportError as exc:
                if generation == self._generation:
                    logger.warning("Poll failed (rid=%s): %s", cursor, exc)
                    self._set_status(PollStatus.TRANSIENT_ERROR, str(exc))
                return False

            if generation != self._generation or self._state is not PollState.POLLING:
                logger.debug("Discarding delta rid=%s from a cancelled cycle", envelope.rid)
                return False
            if envelope.full_update:
                logger.info("Full resync: rid=%s, %d torrents", envelope.rid, len(envelope.torrents))
            try:
                self._on_delta(envelope)
            except Exception as exc:
                logger.exception("Failed to apply delta rid=%s", envelope.rid)
                self._set_status(PollStatus.TRANSIENT_ERROR, str(exc))
                return False
            self._cursor.advance(envelope.rid)
            self._cycles += 1
            self._transition(PollState.POLLING)
            self._set_status(PollStatus.LIVE)
            return True

    async def refresh_categories(self) -> bool:
        if self._state is not PollState.POLLING or self._on_categories is None:
            return False
        generation = self._generation
        try:
            categories = await self._transport.fetch_categories()
        except AuthenticationError as exc:
            if generation == self._generation:
                self._session_rejected(exc)
            return False
        except TransportError as exc:
            logger.warning("Category refresh failed: %s", exc)
            return False
        if generation != self._generation:
            return False
        self._on_categories(categories)
        return True

    def _categories_due(self) -> bool:
        if not self.category_every or self._on_categories is None:
            return False
        return (self._cycles - 1) % self.category_every == 0

    async def step(self) -> None:
        """Perform one action for the current state."""
        if self._state is PollState.AUTHENTICATING:
            await self.authenticate()
        elif self._state is PollState.POLLING:
            if await self.poll_once() and self._categories_due():
                await self.refresh_categories()

    def _next_delay(self, before: PollState, started: float) -> float | None:
        if before is PollState.AUTHENTICATING and self._state is PollState.POLLING:
            return 0.0
        if self._state is PollState.AUTHENTICATING and self._status is PollStatus.AUTH_ERROR:
            # Wait for new credentials.
            return None
        return max(0.0, self.interval_s - (time.monotonic() - started))

    async def _wait(self, delay: float | None) -> None:
        if delay == 0.0:
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _run(self) -> None:
        logger.info("Starting poll loop (interval=%ss)", self.interval_s)
        while self._state is not PollState.STOPPED:
            self._wake.clear()
            before = self._state
            started = time.monotonic()
            try:
                await self.step()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Poll loop error")
                self._set_status(PollStatus.TRANSIENT_ERROR, str(exc))
            if self._state is PollState.STOPPED:
                break
            await self._wait(self._next_delay(before, started))
        logger.info("Poll loop stopped")

    def start(self) -> asyncio.Task:
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self._run(), name="qbt-poller")
        return self._task

    async def stop(self) -> None:
        """Stop the loop; a fetch still in flight is discarded when it lands."""
        self._generation += 1
        if self._state is not PollState.STOPPED:
            self._transition(PollState.STOPPED)
            self._set_status(PollStatus.STOPPED)
        self._wake.set()
        task, self._task = self._task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = [
    "DEFAULT_INTERVAL_S",
    "DEFAULT_CATEGORY_EVERY",
    "PollState",
    "PollStatus",
    "TRANSITIONS",
    "InvalidTransition",
    "Poller",
]
