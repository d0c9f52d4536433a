"""Client-side mirror of the server state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from .record import TorrentRecord


@dataclass(frozen=True)
class StateMirror:
    """Torrent records keyed by hash plus server-level aggregates.

    Instances are never mutated; the reconciler returns a new mirror for
    every delta and the session swaps its reference.
    """

    torrents: Mapping[str, TorrentRecord] = field(default_factory=dict)
    server_state: Mapping[str, Any] = field(default_factory=dict)
    categories: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    tags: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "StateMirror":
        return cls()

    def __len__(self) -> int:
        return len(self.torrents)

    def __contains__(self, torrent_hash: object) -> bool:
        return torrent_hash in self.torrents

    def __iter__(self) -> Iterator[TorrentRecord]:
        return iter(self.torrents.values())

    def get(self, torrent_hash: str) -> TorrentRecord | None:
        return self.torrents.get(torrent_hash)


__all__ = ["StateMirror"]
