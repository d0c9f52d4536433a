"""Sync cursor: the last `rid` whose delta has been fully applied."""

from __future__ import annotations


class SyncCursor:
    """Holds one optional server-issued cursor value.

    Values are opaque: `advance` overwrites unconditionally and nothing is
    validated. Callers must advance only after the matching delta has been
    reconciled into the mirror.
    """

    def __init__(self) -> None:
        self._value: int | None = None

    def read(self) -> int | None:
        return self._value

    def advance(self, value: int) -> None:
        self._value = value

    def reset(self) -> None:
        self._value = None

    @property
    def is_set(self) -> bool:
        return self._value is not None

    def __repr__(self) -> str:
        return f"SyncCursor({self._value!r})"


__all__ = ["SyncCursor"]
