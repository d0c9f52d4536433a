"""Poller state machine, cursor handling and the background loop."""

import asyncio

import pytest

from tele_torrent_sync.cursor import SyncCursor
from tele_torrent_sync.errors import AuthenticationError, TransportError
from tele_torrent_sync.poller import (
    TRANSITIONS,
    InvalidTransition,
    Poller,
    PollState,
    PollStatus,
)

from conftest import CONFIG, FakeTransport, full, incremental


class Recorder:
    def __init__(self) -> None:
        self.deltas = []
        self.resets = 0
        self.categories = []
        self.statuses = []
        self.fail_next = False

    def on_delta(self, envelope) -> None:
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("apply failed")
        self.deltas.append(envelope)

    def on_reset(self) -> None:
        self.resets += 1

    def on_categories(self, categories) -> None:
        self.categories.append(categories)

    def on_status(self, status) -> None:
        self.statuses.append(status)


def make_poller(transport, config=CONFIG, **kwargs):
    recorder = Recorder()
    cursor = SyncCursor()
    poller = Poller(
        transport,
        cursor,
        on_delta=recorder.on_delta,
        on_reset=recorder.on_reset,
        on_categories=recorder.on_categories,
        on_status=recorder.on_status,
        config=config,
        **{"interval_s": 0.01, "category_every": 0, **kwargs},
    )
    return poller, cursor, recorder


class SlowTransport(FakeTransport):
    """Fetches take a while and report how many overlap."""

    def __init__(self, deltas=None) -> None:
        super().__init__(deltas)
        self.in_flight = 0
        self.max_in_flight = 0
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.gated = False

    async def fetch_delta(self, cursor):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.entered.set()
        try:
            if self.gated:
                await self.release.wait()
            else:
                await asyncio.sleep(0.01)
            return await super().fetch_delta(cursor)
        finally:
            self.in_flight -= 1


def test_transition_table():
    assert PollState.AUTHENTICATING in TRANSITIONS[PollState.IDLE]
    assert PollState.POLLING not in TRANSITIONS[PollState.IDLE]
    assert TRANSITIONS[PollState.STOPPED] == frozenset({PollState.IDLE})
    for state in (PollState.IDLE, PollState.AUTHENTICATING, PollState.POLLING):
        assert PollState.STOPPED in TRANSITIONS[state]


@pytest.mark.asyncio
async def test_invalid_transition_raises():
    poller, _, _ = make_poller(FakeTransport(), config=None)
    with pytest.raises(InvalidTransition):
        poller._transition(PollState.POLLING)


@pytest.mark.asyncio
async def test_idle_without_credentials_does_nothing():
    transport = FakeTransport()
    poller, _, _ = make_poller(transport, config=None)

    await poller.step()

    assert poller.state is PollState.IDLE
    assert poller.status is PollStatus.IDLE
    assert transport.logins == []


@pytest.mark.asyncio
async def test_login_then_full_snapshot_then_incremental():
    transport = FakeTransport([full(1, {"a": {"name": "A"}}), incremental(2, {"a": {"progress": 0.5}})])
    poller, cursor, recorder = make_poller(transport)
    assert poller.state is PollState.AUTHENTICATING

    await poller.step()
    assert poller.state is PollState.POLLING
    assert transport.logins == [CONFIG]

    await poller.step()
    await poller.step()

    assert transport.cursors == [None, 1]
    assert cursor.read() == 2
    assert [d.rid for d in recorder.deltas] == [1, 2]
    assert poller.status is PollStatus.LIVE


@pytest.mark.asyncio
async def test_cursor_only_advances_after_delta_is_applied():
    transport = FakeTransport([full(1, {}), incremental(2), incremental(3)])
    poller, cursor, recorder = make_poller(transport)
    await poller.step()
    await poller.step()

    recorder.fail_next = True
    await poller.step()

    assert cursor.read() == 1
    assert poller.status is PollStatus.TRANSIENT_ERROR
    assert poller.last_error == "apply failed"

    await poller.step()
    assert cursor.read() == 3
    assert transport.cursors == [None, 1, 1]


@pytest.mark.asyncio
async def test_transient_error_keeps_mirror_and_cursor():
    transport = FakeTransport([full(5, {"a": {}}), TransportError("timeout"), incremental(6)])
    poller, cursor, recorder = make_poller(transport)
    await poller.step()
    await poller.step()
    resets_before = recorder.resets

    await poller.step()

    assert poller.state is PollState.POLLING
    assert poller.status is PollStatus.TRANSIENT_ERROR
    assert poller.last_error == "timeout"
    assert cursor.read() == 5
    assert recorder.resets == resets_before

    await poller.step()
    assert poller.status is PollStatus.LIVE
    assert poller.last_error is None
    assert transport.cursors[-1] == 5


@pytest.mark.asyncio
async def test_rejected_session_resets_and_reauthenticates():
    transport = FakeTransport(
        [full(1, {"a": {}}), AuthenticationError("403"), full(9, {"b": {}})]
    )
    poller, cursor, recorder = make_poller(transport)
    await poller.step()
    await poller.step()
    resets_before = recorder.resets

    await poller.step()

    assert poller.state is PollState.AUTHENTICATING
    assert cursor.read() is None
    assert recorder.resets == resets_before + 1

    await poller.step()
    await poller.step()

    assert len(transport.logins) == 2
    assert transport.cursors[-1] is None
    assert cursor.read() == 9
    assert poller.status is PollStatus.LIVE


@pytest.mark.asyncio
async def test_bad_credentials_wait_for_new_ones():
    transport = FakeTransport([full(1, {})])
    transport.auth_results = [AuthenticationError("Bad credentials")]
    poller, _, _ = make_poller(transport)

    await poller.step()
    assert poller.status is PollStatus.AUTH_ERROR
    assert poller.last_error == "Bad credentials"

    await poller.step()
    assert len(transport.logins) == 1

    poller.set_credentials(CONFIG)
    await poller.step()
    assert poller.state is PollState.POLLING
    assert len(transport.logins) == 2


@pytest.mark.asyncio
async def test_login_transport_error_is_retried():
    transport = FakeTransport([full(1, {})])
    transport.auth_results = [TransportError("refused")]
    poller, _, _ = make_poller(transport)

    await poller.step()
    assert poller.status is PollStatus.TRANSIENT_ERROR
    assert poller.state is PollState.AUTHENTICATING

    await poller.step()
    assert poller.state is PollState.POLLING


@pytest.mark.asyncio
async def test_new_credentials_force_full_resync():
    transport = FakeTransport([full(1, {}), incremental(2), full(1, {})])
    poller, cursor, recorder = make_poller(transport)
    for _ in range(3):
        await poller.step()
    assert cursor.read() == 2

    poller.set_credentials(CONFIG)

    assert cursor.read() is None
    assert poller.state is PollState.AUTHENTICATING
    await poller.step()
    await poller.step()
    assert transport.cursors[-1] is None


@pytest.mark.asyncio
async def test_clearing_credentials_stops():
    poller, cursor, _ = make_poller(FakeTransport())

    poller.set_credentials(None)

    assert poller.state is PollState.STOPPED
    assert poller.status is PollStatus.STOPPED
    assert poller.config is None

    poller.set_credentials(CONFIG)
    assert poller.state is PollState.AUTHENTICATING


@pytest.mark.asyncio
async def test_stop_discards_in_flight_delta():
    transport = SlowTransport([full(1, {})])
    poller, cursor, recorder = make_poller(transport)
    await poller.step()
    transport.gated = True

    pending = asyncio.create_task(poller.poll_once())
    await transport.entered.wait()
    await poller.stop()
    transport.release.set()

    assert await pending is False
    assert recorder.deltas == []
    assert cursor.read() is None
    assert poller.state is PollState.STOPPED


@pytest.mark.asyncio
async def test_cycles_never_overlap():
    transport = SlowTransport([full(1, {}), incremental(2)])
    poller, cursor, _ = make_poller(transport)
    await poller.step()

    await asyncio.gather(poller.poll_once(), poller.poll_once())

    assert transport.max_in_flight == 1
    assert transport.cursors == [None, 1]
    assert cursor.read() == 2


@pytest.mark.asyncio
async def test_categories_refreshed_every_nth_cycle():
    transport = FakeTransport([full(1, {}), incremental(2), incremental(3)])
    transport.categories = {"tv": {"savePath": "/tv"}}
    poller, _, recorder = make_poller(transport, category_every=2)
    await poller.step()

    for _ in range(3):
        await poller.step()

    assert transport.category_calls == 2
    assert recorder.categories[0] == {"tv": {"savePath": "/tv"}}


@pytest.mark.asyncio
async def test_category_failure_does_not_change_status():
    transport = FakeTransport([full(1, {})])
    transport.category_error = TransportError("nope")
    poller, _, recorder = make_poller(transport, category_every=1)
    await poller.step()
    await poller.step()

    assert transport.category_calls == 1
    assert recorder.categories == []
    assert poller.status is PollStatus.LIVE


@pytest.mark.asyncio
async def test_request_refresh_only_wakes_when_polling():
    poller, _, _ = make_poller(FakeTransport([full(1, {})]), config=None)
    poller.request_refresh()
    assert not poller._wake.is_set()

    poller.set_credentials(CONFIG)
    await poller.step()
    poller._wake.clear()
    poller.request_refresh()
    assert poller._wake.is_set()


@pytest.mark.asyncio
async def test_run_loop_polls_until_stopped():
    transport = FakeTransport([full(1, {"a": {}}), incremental(2), incremental(3)])
    poller, cursor, _ = make_poller(transport)

    poller.start()
    for _ in range(200):
        if cursor.read() == 3:
            break
        await asyncio.sleep(0.01)
    await poller.stop()

    assert cursor.read() == 3
    assert poller.state is PollState.STOPPED
    assert not poller.running


@pytest.mark.asyncio
async def test_run_loop_idles_on_auth_error_until_stopped():
    transport = FakeTransport()
    transport.auth_results = [AuthenticationError("denied")]
    poller, _, _ = make_poller(transport)

    poller.start()
    for _ in range(100):
        if poller.status is PollStatus.AUTH_ERROR:
            break
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.05)
    await poller.stop()

    assert len(transport.logins) == 1
    assert not poller.running
