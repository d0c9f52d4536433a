"""qBittorrent WebUI transport.

`QbtTransport` wraps the synchronous `qbittorrentapi.Client` and exposes
the four remote calls the sync core consumes as coroutines (each call runs
in a worker thread via `asyncio.to_thread`). It is the only module that
knows about `qbittorrentapi` exceptions; everything leaving it is one of
the errors in `errors.py`.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

import qbittorrentapi

from .errors import AuthenticationError, MutationError, TransportError
from .models.delta import DeltaEnvelope
from .models.session_config import SessionConfig

logger = logging.getLogger(__name__)

_AUTH_ERRORS = (
    qbittorrentapi.LoginFailed,
    qbittorrentapi.Forbidden403Error,
    qbittorrentapi.Unauthorized401Error,
)


class MutationOp(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    RECHECK = "recheck"
    DELETE = "delete"
    SET_CATEGORY = "set_category"


class Transport(Protocol):
    async def authenticate(self, config: SessionConfig) -> None: ...

    async def fetch_delta(self, cursor: int | None) -> DeltaEnvelope: ...

    async def mutate(
        self, operation: MutationOp, hashes: Sequence[str], **params: Any
    ) -> None: ...

    async def fetch_categories(self) -> dict[str, Mapping[str, Any]]: ...

    async def close(self) -> None: ...


def fmt_bytes_compact_decimal(num_bytes: int) -> str:
    """Format bytes as a compact decimal string (e.g. 244.4MB)."""
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(max(0, num_bytes))
    unit_idx = 0
    while value >= 1000.0 and unit_idx < len(units) - 1:
        value /= 1000.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(value)}{units[unit_idx]}"
    return f"{value:.1f}{units[unit_idx]}"


def _as_hashes(hashes: str | Sequence[str]) -> list[str]:
    if isinstance(hashes, str):
        return [hashes] if hashes else []
    return [h for h in hashes if h]


class QbtTransport:
    """Remote calls against one qBittorrent WebUI.

    `authenticate` builds a fresh `qbittorrentapi.Client` for the given
    config and logs in; the other calls reuse that client's session cookie.
    """

    def __init__(self) -> None:
        self.qbt_client: qbittorrentapi.Client | None = None

    def _client(self) -> qbittorrentapi.Client:
        if self.qbt_client is None:
            raise AuthenticationError("Not logged in to qBittorrent")
        return self.qbt_client

    def _login(self, config: SessionConfig) -> None:
        self._logout()
        client = qbittorrentapi.Client(
            host=config.base_url,
            username=config.username,
            password=config.password,
            REQUESTS_ARGS={"timeout": config.timeout_s},
        )
        try:
            client.auth_log_in()
        except _AUTH_ERRORS as exc:
            logger.warning("Invalid qBittorrent login credentials for %s", config.base_url)
            raise AuthenticationError(str(exc) or "Login failed") from exc
        except qbittorrentapi.APIError as exc:
            raise TransportError(f"Connection error to qBittorrent: {exc}") from exc
        self.qbt_client = client
        try:
            logger.info("Connected to qBittorrent %s at %s", client.app.version, config.base_url)
        except qbittorrentapi.APIError:
            logger.info("Connected to qBittorrent at %s (version unknown)", config.base_url)

    async def authenticate(self, config: SessionConfig) -> None:
        await asyncio.to_thread(self._login, config)

    def _maindata(self, cursor: int | None) -> DeltaEnvelope:
        client = self._client()
        try:
            payload = client.sync_maindata(rid=cursor or 0)
        except _AUTH_ERRORS as exc:
            raise AuthenticationError(str(exc) or "Session rejected") from exc
        except qbittorrentapi.APIError as exc:
            raise TransportError(f"sync/maindata failed: {exc}") from exc
        try:
            return DeltaEnvelope.from_maindata(payload)
        except ValueError as exc:
            raise TransportError(f"Malformed sync/maindata response: {exc}") from exc

    async def fetch_delta(self, cursor: int | None) -> DeltaEnvelope:
        return await asyncio.to_thread(self._maindata, cursor)

    def _call_mutation(
        self, operation: MutationOp, hashes: list[str], params: dict[str, Any]
    ) -> None:
        client = self._client()
        # The WebUI API expects a '|' separated string for multiple hashes
        joined = "|".join(hashes)
        if operation is MutationOp.PAUSE:
            client.torrents_pause(torrent_hashes=joined)
        elif operation is MutationOp.RESUME:
            client.torrents_resume(torrent_hashes=joined)
        elif operation is MutationOp.RECHECK:
            client.torrents_recheck(torrent_hashes=joined)
        elif operation is MutationOp.DELETE:
            client.torrents_delete(
                delete_files=bool(params.get("delete_files", False)),
                torrent_hashes=joined,
            )
        elif operation is MutationOp.SET_CATEGORY:
            client.torrents_set_category(
                category=str(params.get("category") or ""), torrent_hashes=joined
            )
        else:  # pragma: no cover - enum is exhaustive
            raise ValueError(f"Unknown operation: {operation}")

    def _mutate(
        self, operation: MutationOp, hashes: list[str], params: dict[str, Any]
    ) -> None:
        try:
            self._call_mutation(operation, hashes, params)
        except AuthenticationError as exc:
            raise MutationError(operation.value, hashes, str(exc)) from exc
        except qbittorrentapi.APIError as exc:
            raise MutationError(operation.value, hashes, str(exc) or type(exc).__name__) from exc

    async def mutate(
        self, operation: MutationOp, hashes: str | Sequence[str], **params: Any
    ) -> None:
        """Run one mutation for a single hash or a batch of hashes."""
        targets = _as_hashes(hashes)
        if not targets:
            raise MutationError(MutationOp(operation).value, [], "No torrents given")
        await asyncio.to_thread(self._mutate, MutationOp(operation), targets, params)

    def _categories(self) -> dict[str, Mapping[str, Any]]:
        client = self._client()
        try:
            categories = client.torrents_categories() or {}
        except _AUTH_ERRORS as exc:
            raise AuthenticationError(str(exc) or "Session rejected") from exc
        except qbittorrentapi.APIError as exc:
            raise TransportError(f"torrents/categories failed: {exc}") from exc
        return {
            str(name): dict(meta) if isinstance(meta, Mapping) else {}
            for name, meta in categories.items()
        }

    async def fetch_categories(self) -> dict[str, Mapping[str, Any]]:
        return await asyncio.to_thread(self._categories)

    def _logout(self) -> None:
        client, self.qbt_client = self.qbt_client, None
        if client is None:
            return
        try:
            client.auth_log_out()
        except qbittorrentapi.APIError as exc:
            logger.debug("Logout failed; dropping session anyway: %s", exc)

    async def close(self) -> None:
        await asyncio.to_thread(self._logout)


__all__ = ["MutationOp", "Transport", "QbtTransport", "fmt_bytes_compact_decimal"]
