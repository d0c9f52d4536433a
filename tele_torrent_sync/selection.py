"""Selection tracker: hashes picked for bulk operations.

The selection is always a subset of the hashes in the current derived view.
`reconcile` prunes anything that left the view; hashes still visible are
never deselected implicitly.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .models.record import TorrentRecord

logger = logging.getLogger(__name__)


def _hashes(view: Iterable[TorrentRecord]) -> frozenset[str]:
    return frozenset(r.hash for r in view)


class SelectionTracker:
    def __init__(self) -> None:
        self._selected: set[str] = set()
        self._visible: frozenset[str] = frozenset()

    def __contains__(self, torrent_hash: object) -> bool:
        return torrent_hash in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._selected))

    @property
    def selected(self) -> frozenset[str]:
        return frozenset(self._selected)

    def toggle(self, torrent_hash: str) -> bool:
        """Flip membership of a visible hash. Returns the new membership.

        Hashes outside the current view cannot be selected.
        """
        if torrent_hash in self._selected:
            self._selected.discard(torrent_hash)
            return False
        if torrent_hash not in self._visible:
            logger.debug("Ignoring selection of non-visible torrent %s", torrent_hash)
            return False
        self._selected.add(torrent_hash)
        return True

    def select_all(self, view: Iterable[TorrentRecord]) -> None:
        self._visible = _hashes(view)
        self._selected = set(self._visible)

    def clear(self) -> None:
        self._selected = set()

    def reconcile(self, view: Iterable[TorrentRecord]) -> frozenset[str]:
        """Drop selected hashes missing from `view`. Returns the dropped ones."""
        self._visible = _hashes(view)
        kept = self._selected & self._visible
        if len(kept) == len(self._selected):
            return frozenset()
        dropped = frozenset(self._selected - kept)
        self._selected = kept
        logger.debug("Pruned %d torrent(s) from selection", len(dropped))
        return dropped


__all__ = ["SelectionTracker"]
