"""View layer for formatting Telegram messages (HTML)."""

from __future__ import annotations

import html
import math
import time
from typing import Mapping, Sequence

from .derive import ALL, STATUS_FILTERS
from .models.command_spec import CommandSpec
from .models.record import TorrentRecord
from .poller import PollStatus
from .transport import fmt_bytes_compact_decimal

LIST_PAGE_SIZE = 10
_INFINITE_ETA = 8640000

_STATUS_LABELS = {
    PollStatus.IDLE: "⚪ idle",
    PollStatus.AUTHENTICATING: "🔑 authenticating",
    PollStatus.LIVE: "🟢 live",
    PollStatus.TRANSIENT_ERROR: "🟠 connection problem",
    PollStatus.AUTH_ERROR: "🔴 login rejected",
    PollStatus.STOPPED: "⚫ stopped",
}


def bold(text: str) -> str:
    return f"<b>{html.escape(str(text))}</b>"


def code(text: str) -> str:
    return f"<code>{html.escape(str(text))}</code>"


def chunk(msg: str, size: int = 4000) -> list[str]:
    """Split message into chunks ensuring no chunk exceeds size limit."""
    if len(msg) <= size:
        return [msg]

    lines = msg.splitlines()
    chunks: list[str] = []
    current = ""
    for line in lines:
        if len(line) > size:
            if current:
                chunks.append(current)
                current = ""
            start = 0
            while start < len(line):
                chunks.append(line[start : start + size])
                start += size
            continue
        added_length = len(line) + (1 if current else 0)
        if len(current) + added_length > size and current:
            chunks.append(current)
            current = line
        else:
            current = f"{current}\n{line}" if current else line
    if current:
        chunks.append(current)
    return chunks


def format_eta(seconds: int) -> str:
    if seconds < 0 or seconds == _INFINITE_ETA:
        return "∞"
    if seconds == 0:
        return "-"
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_speed(bytes_per_s: int) -> str:
    return f"{fmt_bytes_compact_decimal(bytes_per_s)}/s"


def short_hash(torrent_hash: str) -> str:
    return torrent_hash[:8]


def page_bounds(total_items: int, page: int) -> tuple[int, int]:
    """Clamp `page` and return (page, total_pages)."""
    total_pages = max(1, math.ceil(total_items / LIST_PAGE_SIZE))
    return max(0, min(page, total_pages - 1)), total_pages


def page_slice(records: Sequence[TorrentRecord], page: int) -> Sequence[TorrentRecord]:
    start = page * LIST_PAGE_SIZE
    return records[start : start + LIST_PAGE_SIZE]


def _query_line(filter_value: str, search_text: str) -> str:
    parts = [f"filter {code(filter_value or ALL)}"]
    if search_text.strip():
        parts.append(f"search {code(search_text.strip())}")
    return "<i>" + " • ".join(parts) + "</i>"


def render_torrent_line(record: TorrentRecord, selected: bool) -> str:
    mark = "☑️" if selected else "▫️"
    name = bold(record.name or "<unnamed>")
    details = (
        f"  {code(short_hash(record.hash))} • {html.escape(record.state)} • "
        f"{record.progress * 100:.1f}% of {fmt_bytes_compact_decimal(record.size)}"
    )
    rates = (
        f"  ↓ {format_speed(record.dlspeed)} ↑ {format_speed(record.upspeed)} "
        f"• ETA {format_eta(record.eta)}"
    )
    extras = []
    if record.category:
        extras.append(f"📁 {html.escape(record.category)}")
    if record.tag_names:
        extras.append("🏷 " + html.escape(", ".join(record.tag_names)))
    lines = [f"{mark} {name}", details, rates]
    if extras:
        lines.append("  " + " • ".join(extras))
    return "\n".join(lines)


def render_torrent_list(
    records: Sequence[TorrentRecord],
    selected: frozenset[str],
    filter_value: str = ALL,
    search_text: str = "",
    page: int = 0,
) -> str:
    header = _query_line(filter_value, search_text)
    if not records:
        return f"{header}\n<i>No torrents match.</i>"

    page, total_pages = page_bounds(len(records), page)
    title = f"Torrents {len(records)} (page {page + 1}/{total_pages})"
    if selected:
        title += f" • {len(selected)} selected"
    parts = [f"{bold(title)}\n{header}"]
    for record in page_slice(records, page):
        parts.append(render_torrent_line(record, record.hash in selected))
    return "\n\n".join(parts)


def render_status(
    status: PollStatus,
    last_error: str | None,
    cursor: int | None,
    counts: Mapping[str, int],
    server_state: Mapping[str, object],
    base_url: str | None = None,
) -> str:
    lines = [f"{bold('Sync:')} {_STATUS_LABELS.get(status, status.value)}"]
    if base_url:
        lines.append(f"{bold('Server:')} {code(base_url)}")
    if last_error and status in (PollStatus.TRANSIENT_ERROR, PollStatus.AUTH_ERROR):
        lines.append(f"{bold('Last error:')} {html.escape(last_error)}")
    lines.append(f"{bold('Cursor:')} {code(cursor if cursor is not None else '-')}")

    count_parts = [
        f"{html.escape(name)} {counts.get(name, 0)}" for name in STATUS_FILTERS
    ]
    lines.append(f"{bold('Torrents:')} " + " | ".join(count_parts))

    if server_state:
        dl = int(server_state.get("dl_info_speed", 0) or 0)
        up = int(server_state.get("up_info_speed", 0) or 0)
        lines.append(f"{bold('Speed:')} ↓ {format_speed(dl)} ↑ {format_speed(up)}")
        free = server_state.get("free_space_on_disk")
        if free is not None:
            lines.append(f"{bold('Free space:')} {fmt_bytes_compact_decimal(int(free or 0))}")
        conn = server_state.get("connection_status")
        if conn:
            lines.append(f"{bold('Connection:')} {html.escape(str(conn))}")
    return "\n".join(lines)


def render_session_summary(
    status: PollStatus,
    view_size: int,
    selected: int,
    filter_value: str,
    search_text: str,
) -> str:
    """Sync summary appended to /start and /metrics."""
    state = f"{bold('Sync:')} {_STATUS_LABELS.get(status, status.value)}"
    counts = f"{view_size} in view • {selected} selected"
    return f"{state} • {counts}\n{_query_line(filter_value, search_text)}"


def render_help(commands: Sequence[CommandSpec], group_order: Sequence[str]) -> str:
    by_group: dict[str, list[CommandSpec]] = {group: [] for group in group_order}
    for spec in commands:
        by_group.setdefault(spec.group, []).append(spec)
    sections = [
        "Pick torrents with /list or /select, then pause, resume, recheck, "
        "recategorize or delete the selection."
    ]
    for group in group_order:
        if not by_group[group]:
            continue
        lines = [bold(group)]
        for spec in by_group[group]:
            aliases = "".join(f" (/{a})" for a in spec.aliases)
            lines.append(f"{code(spec.usage)}{aliases} – {html.escape(spec.description)}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def render_categories(names: Sequence[str]) -> str:
    if not names:
        return "<i>No categories defined.</i>"
    lines = [bold("Categories:")]
    lines.extend(f"• {code(n)}" for n in names)
    return "\n".join(lines)


def _format_timestamp(ts: float | None) -> str:
    if not ts:
        return "never"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(ts))


def render_command_metrics(metrics: dict) -> str:
    if not metrics:
        return "<i>No command metrics recorded yet.</i>"

    lines = [bold("Command Metrics:")]
    for name in sorted(metrics.keys()):
        entry = metrics[name]
        last_run = _format_timestamp(entry.last_run_ts)
        line = (
            f"{code(name)} runs {entry.count} ok {entry.success} err {entry.error} "
            f"rl {entry.rate_limited} avg {entry.avg_latency_s * 1000:.1f}ms "
            f"p95 {entry.p95_latency_s * 1000:.1f}ms max {entry.max_latency_s * 1000:.1f}ms "
            f"last {html.escape(last_run)}"
        )
        lines.append(line)
    return "\n".join(lines)
