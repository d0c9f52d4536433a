"""Command registry (single source of truth for help + wiring)."""

from __future__ import annotations

from .models.command_spec import CommandSpec, Group


_INFO_COMMANDS = (
    CommandSpec("start", "Info", "/start", "show help and sync status", "cmd_start"),
    CommandSpec("help", "Info", "/help", "this menu", "cmd_help"),
    CommandSpec(
        "whoami",
        "Info",
        "/whoami",
        "show chat id and whether it is allowed",
        "cmd_whoami",
    ),
    CommandSpec(
        "metrics",
        "Info",
        "/metrics",
        "command metrics summary",
        "cmd_metrics",
    ),
)

_TORRENTS_COMMANDS = (
    CommandSpec(
        "status",
        "Torrents",
        "/status",
        "sync status, per-state counts and server speeds",
        "cmd_status",
    ),
    CommandSpec(
        "list",
        "Torrents",
        "/list [page]",
        "torrents in the current view (tap to select)",
        "cmd_list",
        aliases=("ls",),
    ),
    CommandSpec(
        "categories",
        "Torrents",
        "/categories",
        "known categories",
        "cmd_categories",
    ),
    CommandSpec(
        "reconnect",
        "Torrents",
        "/reconnect",
        "log in again and resync from a full snapshot",
        "cmd_reconnect",
    ),
)

_VIEW_COMMANDS = (
    CommandSpec(
        "filter",
        "View",
        "/filter [all|<state>|category:<name>|tag:<a>,<b>]",
        "set the view filter (no argument shows it)",
        "cmd_filter",
    ),
    CommandSpec(
        "search",
        "View",
        "/search [text]",
        "case-insensitive name search (no argument clears it)",
        "cmd_search",
    ),
)

_SELECTION_COMMANDS = (
    CommandSpec(
        "select",
        "Selection",
        "/select <hash prefix|name>",
        "toggle torrents in the current view",
        "cmd_select",
    ),
    CommandSpec(
        "selectall",
        "Selection",
        "/selectall",
        "select every torrent in the current view",
        "cmd_selectall",
    ),
    CommandSpec(
        "clear",
        "Selection",
        "/clear",
        "clear the selection",
        "cmd_clear",
    ),
)

_ACTION_COMMANDS = (
    CommandSpec(
        "pause",
        "Actions",
        "/pause",
        "pause selected torrents",
        "cmd_pause",
    ),
    CommandSpec(
        "resume",
        "Actions",
        "/resume",
        "resume selected torrents",
        "cmd_resume",
    ),
    CommandSpec(
        "recheck",
        "Actions",
        "/recheck",
        "force recheck of selected torrents",
        "cmd_recheck",
    ),
    CommandSpec(
        "delete",
        "Actions",
        "/delete [files] yes",
        "delete selected torrents (add 'files' to remove data)",
        "cmd_delete",
    ),
    CommandSpec(
        "setcategory",
        "Actions",
        "/setcategory [name]",
        "set category of selected torrents (no name clears it)",
        "cmd_setcategory",
    ),
)


COMMANDS: tuple[CommandSpec, ...] = (
    *_INFO_COMMANDS,
    *_TORRENTS_COMMANDS,
    *_VIEW_COMMANDS,
    *_SELECTION_COMMANDS,
    *_ACTION_COMMANDS,
)


GROUP_ORDER: tuple[Group, ...] = (
    "Torrents",
    "View",
    "Selection",
    "Actions",
    "Info",
)
