import pytest

from tele_torrent_sync import background
from tele_torrent_sync.handlers.common import get_session, get_state
from tele_torrent_sync.poller import PollState
from tele_torrent_sync.session import SyncSession

from conftest import CONFIG, DummyApplication, DummyContext, FakeTransport, full


@pytest.mark.asyncio
async def test_ensure_started_creates_one_session(monkeypatch):
    transport = FakeTransport([full(1, {"a": {"name": "A"}})])
    built = []

    def build():
        session = SyncSession(transport, CONFIG, interval_s=0.01, category_every=0)
        built.append(session)
        return session

    monkeypatch.setattr(background, "build_session", build)
    app = DummyApplication()

    first = background.ensure_started(app)
    second = background.ensure_started(app)

    assert first is second
    assert len(built) == 1
    assert first.poller.running

    await background.shutdown(app)

    assert get_state(app).session is None
    assert first.state is PollState.STOPPED
    assert transport.closed


@pytest.mark.asyncio
async def test_get_session_starts_session_lazily(monkeypatch):
    monkeypatch.setattr(
        background, "build_session", lambda: SyncSession(FakeTransport(), None)
    )
    context = DummyContext()

    session = get_session(context)

    assert get_state(context.application).session is session
    assert not session.poller.running
    await background.shutdown(context.application)


@pytest.mark.asyncio
async def test_shutdown_without_session_is_noop():
    await background.shutdown(DummyApplication())
