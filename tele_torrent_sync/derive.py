"""Derived view engine: filtered/searched projections of the mirror.

The view is recomputed from scratch on every mirror, filter or search
change; it is never patched incrementally. Filter values:

- `all` keeps everything.
- `category:<name>` keeps records in that category; records without one
  compare as `UNCATEGORIZED`.
- `tag:<a>,<b>` keeps records carrying any of the listed tags
  (case-insensitive).
- anything else keeps records whose `state` equals the value exactly.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Literal

from .models.mirror import StateMirror
from .models.record import TorrentRecord

ALL = "all"
CATEGORY_PREFIX = "category:"
TAG_PREFIX = "tag:"
UNCATEGORIZED = "Uncategorized"

STATUS_FILTERS: tuple[str, ...] = (
    ALL,
    "downloading",
    "pausedDL",
    "uploading",
    "completed",
    "checkingT",
    "error",
)

FilterKind = Literal["all", "category", "tag", "status"]


@dataclass(frozen=True)
class ParsedFilter:
    kind: FilterKind
    value: str = ""
    tags: frozenset[str] = frozenset()


def parse_filter(filter_value: str | None) -> ParsedFilter:
    raw = filter_value if filter_value is not None else ALL
    if raw == ALL:
        return ParsedFilter("all")
    if raw.startswith(CATEGORY_PREFIX):
        return ParsedFilter("category", raw[len(CATEGORY_PREFIX) :])
    if raw.startswith(TAG_PREFIX):
        wanted = frozenset(
            t.strip().lower() for t in raw[len(TAG_PREFIX) :].split(",") if t.strip()
        )
        return ParsedFilter("tag", raw[len(TAG_PREFIX) :], wanted)
    return ParsedFilter("status", raw)


def normalize_search(search_text: str | None) -> str:
    return (search_text or "").strip().lower()


def _predicate(parsed: ParsedFilter) -> Callable[[TorrentRecord], bool]:
    if parsed.kind == "all":
        return lambda r: True
    if parsed.kind == "category":
        return lambda r: (r.category or UNCATEGORIZED) == parsed.value
    if parsed.kind == "tag":
        return lambda r: any(t.lower() in parsed.tags for t in r.tag_names)
    return lambda r: r.state == parsed.value


def _ordered(mirror: StateMirror) -> list[TorrentRecord]:
    # Canonical order: by hash, so the output never depends on arrival order.
    return [mirror.torrents[h] for h in sorted(mirror.torrents)]


def derive_view(
    mirror: StateMirror, filter_value: str | None = ALL, search_text: str | None = ""
) -> list[TorrentRecord]:
    """Return the records of `mirror` passing the search and the filter."""
    records = _ordered(mirror)

    needle = normalize_search(search_text)
    if needle:
        records = [r for r in records if r.name and needle in r.name.lower()]

    keep = _predicate(parse_filter(filter_value))
    return [r for r in records if keep(r)]


def filter_counts(mirror: StateMirror) -> dict[str, int]:
    """Number of records per state, plus `all`."""
    counts = Counter(r.state for r in mirror)
    out = {name: counts.get(name, 0) for name in STATUS_FILTERS if name != ALL}
    out[ALL] = len(mirror)
    return out


def category_names(mirror: StateMirror) -> list[str]:
    """Known categories: the catalogue plus any category seen on a record.

    `UNCATEGORIZED` is listed last when at least one record has no category,
    so every name returned is a usable `category:` filter.
    """
    names = set(mirror.categories)
    names.update(r.category for r in mirror if r.category)
    ordered = sorted(names - {UNCATEGORIZED})
    if UNCATEGORIZED in names or any(not r.category for r in mirror):
        ordered.append(UNCATEGORIZED)
    return ordered


__all__ = [
    "ALL",
    "CATEGORY_PREFIX",
    "TAG_PREFIX",
    "UNCATEGORIZED",
    "STATUS_FILTERS",
    "ParsedFilter",
    "parse_filter",
    "normalize_search",
    "derive_view",
    "filter_counts",
    "category_names",
]
