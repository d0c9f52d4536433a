"""Dispatch layer: applies rate limiting then calls the real handlers."""

from __future__ import annotations

from .common import rate_limit
from . import meta, torrents


# Meta
cmd_start = rate_limit(meta.cmd_start, name="start")
cmd_help = rate_limit(meta.cmd_help, name="help")
cmd_whoami = rate_limit(meta.cmd_whoami, name="whoami")
cmd_metrics = rate_limit(meta.cmd_metrics, name="metrics")

# Torrents
cmd_status = rate_limit(torrents.cmd_status, name="status")
cmd_list = rate_limit(torrents.cmd_list, name="list")
cmd_categories = rate_limit(torrents.cmd_categories, name="categories")
cmd_reconnect = rate_limit(torrents.cmd_reconnect, name="reconnect")

# View
cmd_filter = rate_limit(torrents.cmd_filter, name="filter")
cmd_search = rate_limit(torrents.cmd_search, name="search")

# Selection
cmd_select = rate_limit(torrents.cmd_select, name="select")
cmd_selectall = rate_limit(torrents.cmd_selectall, name="selectall")
cmd_clear = rate_limit(torrents.cmd_clear, name="clear")

# Actions
cmd_pause = rate_limit(torrents.cmd_pause, name="pause")
cmd_resume = rate_limit(torrents.cmd_resume, name="resume")
cmd_recheck = rate_limit(torrents.cmd_recheck, name="recheck")
cmd_delete = rate_limit(torrents.cmd_delete, name="delete")
cmd_setcategory = rate_limit(torrents.cmd_setcategory, name="setcategory")
