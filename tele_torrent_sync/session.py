"""Sync session: owns the mirror, the derived view and the selection.

The session is the single writer of all three. Consumers read snapshots
(`view`, `selection`, `status`) and change what they see only through the
hooks below (`set_filter`, `set_search`, `toggle`, `select_all`,
`clear_selection`, `mutate`). Listeners registered with `add_listener` are
called synchronously after every change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from .cursor import SyncCursor
from .derive import ALL, derive_view, filter_counts
from .errors import MutationError
from .models.delta import DeltaEnvelope
from .models.mirror import StateMirror
from .models.record import TorrentRecord
from .models.session_config import SessionConfig
from .poller import DEFAULT_CATEGORY_EVERY, DEFAULT_INTERVAL_S, Poller, PollState, PollStatus
from .reconcile import reconcile, replace_categories
from .selection import SelectionTracker
from .transport import MutationOp, Transport

logger = logging.getLogger(__name__)

_VERBS: dict[MutationOp, tuple[str, str]] = {
    MutationOp.PAUSE: ("Paused", "pause"),
    MutationOp.RESUME: ("Resumed", "resume"),
    MutationOp.RECHECK: ("Rechecking", "recheck"),
    MutationOp.DELETE: ("Deleted", "delete"),
    MutationOp.SET_CATEGORY: ("Set category on", "set category on"),
}


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one (possibly batched) mutation request."""

    operation: MutationOp
    hashes: tuple[str, ...]
    ok: bool
    error: str | None = None

    @property
    def message(self) -> str:
        done, verb = _VERBS[self.operation]
        count = len(self.hashes)
        noun = "torrent" if count == 1 else "torrents"
        if self.ok:
            return f"{done} {count} {noun}."
        if not count:
            return f"Nothing to {verb}: {self.error or 'no torrents selected'}."
        return f"Failed to {verb} {count} {noun}: {self.error}"


Listener = Callable[["SyncSession"], None]


class SyncSession:
    def __init__(
        self,
        transport: Transport,
        config: SessionConfig | None = None,
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
        category_every: int = DEFAULT_CATEGORY_EVERY,
    ) -> None:
        self._transport = transport
        self._cursor = SyncCursor()
        self._mirror = StateMirror.empty()
        self._filter = ALL
        self._search = ""
        self._view: tuple[TorrentRecord, ...] = ()
        self._view_hashes: frozenset[str] = frozenset()
        self._selection = SelectionTracker()
        self._listeners: list[Listener] = []
        self.poller = Poller(
            transport,
            self._cursor,
            on_delta=self._apply_delta,
            on_reset=self._reset_mirror,
            on_categories=self._apply_categories,
            on_status=self._status_changed,
            interval_s=interval_s,
            category_every=category_every,
            config=config,
        )

    # -- snapshots -------------------------------------------------------

    @property
    def mirror(self) -> StateMirror:
        return self._mirror

    @property
    def view(self) -> tuple[TorrentRecord, ...]:
        return self._view

    @property
    def view_size(self) -> int:
        return len(self._view)

    @property
    def selection(self) -> frozenset[str]:
        return self._selection.selected

    @property
    def selected_records(self) -> list[TorrentRecord]:
        return [r for r in self._view if r.hash in self._selection]

    @property
    def filter_value(self) -> str:
        return self._filter

    @property
    def search_text(self) -> str:
        return self._search

    @property
    def status(self) -> PollStatus:
        return self.poller.status

    @property
    def state(self) -> PollState:
        return self.poller.state

    @property
    def last_error(self) -> str | None:
        return self.poller.last_error

    @property
    def cursor(self) -> int | None:
        return self._cursor.read()

    def counts(self) -> dict[str, int]:
        return filter_counts(self._mirror)

    def is_selected(self, torrent_hash: str) -> bool:
        return torrent_hash in self._selection

    # -- lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self.poller.config is not None:
            self.poller.start()

    async def stop(self) -> None:
        await self.poller.stop()
        await self._transport.close()

    def update_credentials(self, config: SessionConfig | None) -> None:
        """Swap credentials; the next login resynchronizes from scratch."""
        self.poller.set_credentials(config)
        if config is not None and self.poller.state is PollState.AUTHENTICATING:
            self.poller.start()

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- query hooks -----------------------------------------------------

    def set_filter(self, filter_value: str | None) -> None:
        self._filter = filter_value or ALL
        self._recompute(prune=True)

    def set_search(self, search_text: str | None) -> None:
        self._search = search_text or ""
        self._recompute(prune=True)

    # -- selection hooks -------------------------------------------------

    def toggle(self, torrent_hash: str) -> bool:
        selected = self._selection.toggle(torrent_hash)
        self._notify()
        return selected

    def select_all(self) -> None:
        self._selection.select_all(self._view)
        self._notify()

    def clear_selection(self) -> None:
        self._selection.clear()
        self._notify()

    # -- mutations -------------------------------------------------------

    async def mutate(
        self,
        operation: MutationOp | str,
        hashes: str | Iterable[str] | None = None,
        **params: Any,
    ) -> MutationResult:
        """Ask the server to change torrents; defaults to the selection.

        The mirror is left alone: the effect shows up once a later poll
        reports it. Failures are returned, never raised.
        """
        op = MutationOp(operation)
        if hashes is None:
            targets = tuple(self._selection)
        elif isinstance(hashes, str):
            targets = (hashes,)
        else:
            targets = tuple(hashes)
        if not targets:
            return MutationResult(op, (), ok=False, error="no torrents selected")
        try:
            await self._transport.mutate(op, targets, **params)
        except MutationError as exc:
            logger.exception("Mutation %s failed for %d torrent(s)", op.value, len(targets))
            return MutationResult(op, targets, ok=False, error=str(exc))
        logger.info("Mutation %s sent for %d torrent(s)", op.value, len(targets))
        self.poller.request_refresh()
        return MutationResult(op, targets, ok=True)

    # -- poller callbacks ------------------------------------------------

    def _apply_delta(self, envelope: DeltaEnvelope) -> None:
        self._mirror = reconcile(self._mirror, envelope)
        self._recompute(prune=False)

    def _apply_categories(self, categories: Mapping[str, Mapping[str, Any]]) -> None:
        self._mirror = replace_categories(self._mirror, categories)
        self._notify()

    def _reset_mirror(self) -> None:
        self._mirror = StateMirror.empty()
        self._recompute(prune=False)

    def _status_changed(self, status: PollStatus) -> None:
        logger.debug("Session status: %s", status.value)
        self._notify()

    def _recompute(self, prune: bool) -> None:
        self._view = tuple(derive_view(self._mirror, self._filter, self._search))
        hashes = frozenset(r.hash for r in self._view)
        # Mirror ticks that leave membership unchanged skip the prune.
        if prune or hashes != self._view_hashes:
            self._selection.reconcile(self._view)
        self._view_hashes = hashes
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Session listener failed")


__all__ = ["MutationResult", "SyncSession"]
