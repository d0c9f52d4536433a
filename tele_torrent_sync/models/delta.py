"""Delta envelope: one server response to a poll."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    return tuple(str(v) for v in value if v is not None)


def _mapping_of_mappings(value: Any) -> dict[str, Mapping[str, Any]]:
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, Mapping)}


@dataclass(frozen=True)
class DeltaEnvelope:
    """Cursor, full/incremental flag, partial updates and removals.

    `categories`, `tags` and `server_state` are None when the response did
    not mention them.
    """

    rid: int
    full_update: bool = False
    torrents: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    torrents_removed: tuple[str, ...] = ()
    server_state: Mapping[str, Any] | None = None
    categories: Mapping[str, Mapping[str, Any]] | None = None
    categories_removed: tuple[str, ...] = ()
    tags: tuple[str, ...] | None = None
    tags_removed: tuple[str, ...] = ()

    @classmethod
    def from_maindata(cls, payload: Mapping[str, Any]) -> "DeltaEnvelope":
        """Build an envelope from a `/api/v2/sync/maindata` response.

        Raises ValueError when the cursor is missing or not an integer; every
        other missing or mistyped key is read as "nothing changed".
        """
        if not isinstance(payload, Mapping):
            raise ValueError("maindata payload is not an object")
        try:
            rid = int(payload["rid"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"maindata payload has no valid rid: {exc}") from exc

        server_state = payload.get("server_state")
        categories = payload.get("categories")
        tags = payload.get("tags")
        return cls(
            rid=rid,
            full_update=bool(payload.get("full_update", False)),
            torrents=_mapping_of_mappings(payload.get("torrents")),
            torrents_removed=_str_tuple(payload.get("torrents_removed")),
            server_state=dict(server_state) if isinstance(server_state, Mapping) else None,
            categories=_mapping_of_mappings(categories) if isinstance(categories, Mapping) else None,
            categories_removed=_str_tuple(payload.get("categories_removed")),
            tags=_str_tuple(tags) if tags is not None else None,
            tags_removed=_str_tuple(payload.get("tags_removed")),
        )


__all__ = ["DeltaEnvelope"]
