"""Reconciler: applies a delta envelope to the previous mirror.

`reconcile` is pure. It never raises on identifiers it does not know and
never produces duplicate identifiers, because the result is keyed by hash.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models.delta import DeltaEnvelope
from .models.mirror import StateMirror
from .models.record import TorrentRecord, merge_record

logger = logging.getLogger(__name__)


def _full_torrents(
    updates: Mapping[str, Mapping[str, Any]],
) -> dict[str, TorrentRecord]:
    return {h: merge_record(None, h, fields) for h, fields in updates.items()}


def _incremental_torrents(
    previous: Mapping[str, TorrentRecord],
    updates: Mapping[str, Mapping[str, Any]],
    removals: Iterable[str],
) -> dict[str, TorrentRecord]:
    torrents = dict(previous)
    for torrent_hash, fields in updates.items():
        torrents[torrent_hash] = merge_record(torrents.get(torrent_hash), torrent_hash, fields)
    for torrent_hash in removals:
        torrents.pop(torrent_hash, None)
    return torrents


def _incremental_categories(
    previous: Mapping[str, Mapping[str, Any]],
    updates: Mapping[str, Mapping[str, Any]] | None,
    removals: Iterable[str],
) -> dict[str, Mapping[str, Any]]:
    categories = dict(previous)
    for name, fields in (updates or {}).items():
        categories[name] = {**categories.get(name, {}), **fields}
    for name in removals:
        categories.pop(name, None)
    return categories


def _incremental_tags(
    previous: Iterable[str], added: Iterable[str] | None, removals: Iterable[str]
) -> tuple[str, ...]:
    removed = set(removals)
    tags = [t for t in previous if t not in removed]
    for tag in added or ():
        if tag not in tags and tag not in removed:
            tags.append(tag)
    return tuple(tags)


def reconcile(previous: StateMirror, envelope: DeltaEnvelope) -> StateMirror:
    """Return the mirror that results from applying `envelope` to `previous`.

    A full envelope replaces every record with the snapshot; its removal
    lists are ignored. An incremental envelope merges each partial update
    field by field and then drops the removed identifiers. A full
    snapshot sets the server aggregates verbatim (empty when it has none);
    an incremental envelope replaces them wholesale only when present.
    """
    if envelope.full_update:
        torrents = _full_torrents(envelope.torrents)
        categories = {n: dict(c) for n, c in (envelope.categories or {}).items()}
        tags = tuple(dict.fromkeys(envelope.tags or ()))
        logger.debug("Full snapshot rid=%s with %d torrents", envelope.rid, len(torrents))
    else:
        torrents = _incremental_torrents(
            previous.torrents, envelope.torrents, envelope.torrents_removed
        )
        categories = _incremental_categories(
            previous.categories, envelope.categories, envelope.categories_removed
        )
        tags = _incremental_tags(previous.tags, envelope.tags, envelope.tags_removed)

    if envelope.full_update:
        server_state = dict(envelope.server_state or {})
    elif envelope.server_state is not None:
        server_state = dict(envelope.server_state)
    else:
        server_state = previous.server_state
    return StateMirror(
        torrents=torrents,
        server_state=server_state,
        categories=categories,
        tags=tags,
    )


def replace_categories(
    previous: StateMirror, categories: Mapping[str, Mapping[str, Any]]
) -> StateMirror:
    """Swap in a category catalogue fetched outside the delta protocol."""
    return StateMirror(
        torrents=previous.torrents,
        server_state=previous.server_state,
        categories={n: dict(c) for n, c in categories.items()},
        tags=previous.tags,
    )


__all__ = ["reconcile", "replace_categories"]
