"""Torrent record and the typed partial-update merge."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TorrentRecord:
    """One torrent as mirrored from the server.

    `hash` never changes once the record exists. Fields the server sends that
    are not modelled here are kept verbatim in `extra`.
    """

    hash: str
    name: str = ""
    state: str = "unknown"
    progress: float = 0.0
    dlspeed: int = 0
    upspeed: int = 0
    category: str = ""
    tags: str = ""
    size: int = 0
    eta: int = 0
    added_on: int = 0
    completion_on: int = 0
    extra: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def tag_names(self) -> list[str]:
        """Tags parsed from the comma-separated `tags` field."""
        return [t.strip() for t in (self.tags or "").split(",") if t.strip()]


def _to_str(value: Any) -> str:
    return "" if value is None else str(value)


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "name": _to_str,
    "state": _to_str,
    "progress": float,
    "dlspeed": int,
    "upspeed": int,
    "category": _to_str,
    "tags": _to_str,
    "size": int,
    "eta": int,
    "added_on": int,
    "completion_on": int,
}


def merge_record(
    previous: TorrentRecord | None, torrent_hash: str, partial: Mapping[str, Any]
) -> TorrentRecord:
    """Apply a sparse field update to `previous`.

    Present fields replace, absent fields keep their prior value. A missing
    `previous` starts from a fresh record with defaults. The identifier is
    always `torrent_hash`; a `hash` key inside `partial` is ignored. A value
    that cannot be converted to the field's type is treated as absent.
    """
    base = previous if previous is not None else TorrentRecord(hash=torrent_hash)
    known: dict[str, Any] = {}
    extra_updates: dict[str, Any] = {}
    for key, value in partial.items():
        if key == "hash":
            continue
        convert = _CONVERTERS.get(key)
        if convert is None:
            extra_updates[key] = value
            continue
        try:
            known[key] = convert(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed %s=%r for torrent %s", key, value, torrent_hash)
    if extra_updates:
        known["extra"] = {**base.extra, **extra_updates}
    if not known:
        return base
    return replace(base, **known)


__all__ = ["TorrentRecord", "merge_record"]
