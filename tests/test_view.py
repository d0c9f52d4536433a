from tele_torrent_sync import view
from tele_torrent_sync.models.metrics import CommandMetrics
from tele_torrent_sync.models.record import TorrentRecord
from tele_torrent_sync.poller import PollStatus


def test_chunk_splits_long_message():
    msg = "\n".join(["line"] * 2000)
    parts = view.chunk(msg, size=100)
    assert all(len(p) <= 100 for p in parts)
    assert "\n".join(parts) == msg


def test_chunk_splits_single_long_line():
    parts = view.chunk("x" * 250, size=100)
    assert [len(p) for p in parts] == [100, 100, 50]


def test_format_eta():
    assert view.format_eta(8640000) == "∞"
    assert view.format_eta(-1) == "∞"
    assert view.format_eta(0) == "-"
    assert view.format_eta(90) == "1m"
    assert view.format_eta(3 * 3600 + 120) == "3h 2m"
    assert view.format_eta(2 * 86400 + 3600) == "2d 1h"


def test_page_bounds_clamps():
    assert view.page_bounds(0, 3) == (0, 1)
    assert view.page_bounds(25, 1) == (1, 3)
    assert view.page_bounds(25, 9) == (2, 3)
    assert view.page_bounds(25, -2) == (0, 3)


def test_render_torrent_list_empty():
    text = view.render_torrent_list([], frozenset(), "downloading", " ubu ")
    assert "No torrents match." in text
    assert "<code>downloading</code>" in text
    assert "<code>ubu</code>" in text


def test_render_torrent_list_marks_selection_and_escapes():
    records = [
        TorrentRecord(hash="a" * 40, name="<Ubuntu>", state="downloading", progress=0.5, size=1000),
        TorrentRecord(hash="b" * 40, name="Fedora", category="Linux", tags="iso,hd"),
    ]
    text = view.render_torrent_list(records, frozenset({"a" * 40}))

    assert "Torrents 2 (page 1/1) • 1 selected" in text
    assert "☑️ <b>&lt;Ubuntu&gt;</b>" in text
    assert "▫️ <b>Fedora</b>" in text
    assert "50.0% of 1.0KB" in text
    assert "📁 Linux" in text
    assert "🏷 iso, hd" in text


def test_render_torrent_list_pages():
    records = [TorrentRecord(hash=f"{i:02d}", name=f"t{i:02d}") for i in range(12)]
    text = view.render_torrent_list(records, frozenset(), page=1)
    assert "page 2/2" in text
    assert "t10" in text
    assert "t00" not in text


def test_render_status():
    text = view.render_status(
        PollStatus.TRANSIENT_ERROR,
        "timed out",
        42,
        {"all": 3, "downloading": 2},
        {"dl_info_speed": 2_000_000, "up_info_speed": 0, "free_space_on_disk": 5_000_000_000},
        base_url="http://qbt:8080",
    )
    assert "connection problem" in text
    assert "timed out" in text
    assert "<code>42</code>" in text
    assert "all 3" in text
    assert "downloading 2" in text
    assert "↓ 2.0MB/s" in text
    assert "5.0GB" in text


def test_render_status_hides_error_when_live():
    text = view.render_status(PollStatus.LIVE, "old", None, {}, {})
    assert "old" not in text
    assert "<code>-</code>" in text


def test_render_categories():
    assert "No categories" in view.render_categories([])
    assert "<code>tv</code>" in view.render_categories(["tv"])


def test_render_command_metrics():
    metrics = CommandMetrics()
    metrics.count = 1
    metrics.success = 1
    metrics.add_sample(0.02)
    text = view.render_command_metrics({"list": metrics})
    assert "<code>list</code> runs 1 ok 1" in text
    assert "avg 20.0ms" in text
