"""Error taxonomy for the sync core.

Every error raised by the transport layer is one of these. The poller and
the session catch them at the boundary nearest their occurrence and turn
them into status values, so consumers observe flags rather than exceptions.
"""

from __future__ import annotations

from typing import Sequence


class SyncError(Exception):
    """Base class for all sync-core errors."""


class AuthenticationError(SyncError):
    """Invalid credentials or an expired/rejected session."""


class TransportError(SyncError):
    """A single remote call failed (network, non-2xx, malformed body)."""


class MutationError(SyncError):
    """A pause/resume/recheck/delete/set-category request failed."""

    def __init__(self, operation: str, hashes: Sequence[str], message: str) -> None:
        super().__init__(message)
        self.operation = operation
        self.hashes = tuple(hashes)


__all__ = ["SyncError", "AuthenticationError", "TransportError", "MutationError"]
