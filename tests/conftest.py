"""Shared test fixtures and dummy classes."""

from __future__ import annotations

from typing import Any

from tele_torrent_sync.errors import TransportError
from tele_torrent_sync.models.delta import DeltaEnvelope
from tele_torrent_sync.models.mirror import StateMirror
from tele_torrent_sync.models.session_config import SessionConfig
from tele_torrent_sync.reconcile import reconcile
from tele_torrent_sync.session import SyncSession


CONFIG = SessionConfig(
    base_url="http://qbt.test:8080", username="admin", password="secret"
)


def make_mirror(torrents: dict[str, dict[str, Any]]) -> StateMirror:
    """Mirror holding exactly `torrents`, as a full snapshot would."""
    return reconcile(
        StateMirror.empty(), DeltaEnvelope(rid=1, full_update=True, torrents=torrents)
    )


def full(rid: int, torrents: dict[str, dict[str, Any]], **extra: Any) -> dict:
    return {"rid": rid, "full_update": True, "torrents": torrents, **extra}


def incremental(
    rid: int,
    torrents: dict[str, dict[str, Any]] | None = None,
    removed: list[str] | None = None,
    **extra: Any,
) -> dict:
    payload: dict[str, Any] = {"rid": rid, "torrents": torrents or {}}
    if removed is not None:
        payload["torrents_removed"] = removed
    payload.update(extra)
    return payload


class FakeTransport:
    """In-memory stand-in for QbtTransport.

    `deltas` holds maindata payloads (or exceptions to raise) consumed in
    order by `fetch_delta`. `auth_results` holds exceptions (or None for
    success) consumed by `authenticate`; an empty list means success.
    """

    def __init__(self, deltas: list[Any] | None = None) -> None:
        self.deltas: list[Any] = list(deltas or [])
        self.auth_results: list[Exception | None] = []
        self.logins: list[SessionConfig] = []
        self.cursors: list[int | None] = []
        self.mutations: list[tuple[str, tuple[str, ...], dict[str, Any]]] = []
        self.mutation_error: Exception | None = None
        self.categories: dict[str, dict[str, Any]] = {}
        self.category_error: Exception | None = None
        self.category_calls = 0
        self.closed = False

    async def authenticate(self, config: SessionConfig) -> None:
        self.logins.append(config)
        if self.auth_results:
            result = self.auth_results.pop(0)
            if result is not None:
                raise result

    async def fetch_delta(self, cursor: int | None) -> DeltaEnvelope:
        self.cursors.append(cursor)
        if not self.deltas:
            raise TransportError("no more deltas")
        item = self.deltas.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, DeltaEnvelope):
            return item
        return DeltaEnvelope.from_maindata(item)

    async def mutate(self, operation, hashes, **params: Any) -> None:
        self.mutations.append((operation.value, tuple(hashes), params))
        if self.mutation_error is not None:
            raise self.mutation_error

    async def fetch_categories(self) -> dict[str, dict[str, Any]]:
        self.category_calls += 1
        if self.category_error is not None:
            raise self.category_error
        return dict(self.categories)

    async def close(self) -> None:
        self.closed = True


async def live_session(
    torrents: dict[str, dict[str, Any]], transport: FakeTransport | None = None
) -> SyncSession:
    """Session that has logged in and applied one full snapshot."""
    transport = transport or FakeTransport()
    transport.deltas.insert(0, full(1, torrents))
    session = SyncSession(transport, CONFIG, interval_s=0.01, category_every=0)
    await session.poller.step()
    await session.poller.step()
    return session


class DummyChat:
    """Dummy Telegram chat for testing."""

    def __init__(self, chat_id: int) -> None:
        self.id = chat_id
        self.type = "private"
        self.sent: list[str] = []

    async def send_message(self, text: str) -> None:
        self.sent.append(text)


class DummyUser:
    """Dummy Telegram user for testing."""

    def __init__(self, user_id: int, username: str | None = None) -> None:
        self.id = user_id
        self.username = username


class DummyMessage:
    """Dummy Telegram message for testing."""

    def __init__(self, chat: DummyChat | None = None) -> None:
        self.chat = chat
        self.replies: list[str] = []
        self.reply_kwargs: list[dict[str, Any]] = []

    async def reply_text(self, text: str, **kwargs: Any) -> None:
        self.replies.append(text)
        self.reply_kwargs.append(kwargs)


class DummyCallbackQuery:
    """Dummy Telegram callback query for testing."""

    def __init__(self, message: DummyMessage, data: str = "") -> None:
        self.message = message
        self.data = data
        self.edits: list[tuple[str, dict[str, Any]]] = []

    async def answer(self, text: str | None = None, **_: Any) -> None:
        return None

    async def edit_message_text(self, text: str, **kwargs: Any) -> None:
        self.edits.append((text, kwargs))


class DummyUpdate:
    """Dummy Telegram update for testing."""

    def __init__(self, chat_id: int, user_id: int) -> None:
        self.effective_chat = DummyChat(chat_id)
        self.effective_user = DummyUser(user_id)
        self.message = DummyMessage(self.effective_chat)
        self.effective_message = self.message
        self.callback_query = DummyCallbackQuery(self.message)


class DummyApplication:
    """Dummy Telegram application for testing."""

    def __init__(self) -> None:
        self.bot_data: dict[str, object] = {}


class DummyContext:
    """Dummy Telegram context for testing."""

    def __init__(self, args: list[str] | None = None) -> None:
        self.args = args or []
        self.application = DummyApplication()
