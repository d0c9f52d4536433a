from __future__ import annotations

import html
import logging

from telegram.constants import ParseMode

from .. import config, view
from ..derive import ALL, STATUS_FILTERS, category_names
from ..transport import MutationOp
from .callbacks import render_list_page
from .common import get_session, get_state, guard, record_error, reply_html

logger = logging.getLogger(__name__)

_CONFIRM_TOKENS = {"yes", "--yes", "confirm", "--confirm"}
_DELETE_FILES_TOKENS = {"files", "--files", "-f"}


async def cmd_status(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    cfg = session.poller.config
    msg = view.render_status(
        session.status,
        session.last_error,
        session.cursor,
        session.counts(),
        session.mirror.server_state,
        base_url=cfg.base_url if cfg else None,
    )
    await reply_html(update, msg)


async def cmd_list(update, context) -> None:
    """Show the current derived view with a selection keyboard."""
    if not await guard(update, context):
        return
    session = get_session(context)
    page = 0
    if context.args:
        try:
            page = max(0, int(context.args[0]) - 1)
        except ValueError:
            await reply_html(update, "Usage: /list [page]")
            return
    get_state(context.application).list_pages[update.effective_chat.id] = page
    text, keyboard = render_list_page(session, page)
    await reply_html(update, text, reply_markup=keyboard)


async def cmd_categories(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    await reply_html(update, view.render_categories(category_names(session.mirror)))


async def cmd_reconnect(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    session.update_credentials(config.session_config())
    await reply_html(update, "🔑 Reconnecting; the next update is a full resync.")


async def cmd_filter(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    if not context.args:
        choices = ", ".join(view.code(f) for f in STATUS_FILTERS)
        await reply_html(
            update,
            f"Current filter: {view.code(session.filter_value)}\n"
            f"<i>Usage:</i> /filter [{choices} | category:&lt;name&gt; | tag:&lt;a&gt;,&lt;b&gt;]",
        )
        return
    value = " ".join(context.args).strip() or ALL
    before = len(session.selection)
    session.set_filter(value)
    dropped = before - len(session.selection)
    msg = f"Filter: {view.code(value)} • {session.view_size} torrent(s)"
    if dropped:
        msg += f"\n<i>{dropped} hidden torrent(s) removed from the selection.</i>"
    await reply_html(update, msg)


async def cmd_search(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    text = " ".join(context.args or []).strip()
    before = len(session.selection)
    session.set_search(text)
    dropped = before - len(session.selection)
    label = view.code(text) if text else "<i>cleared</i>"
    msg = f"Search: {label} • {session.view_size} torrent(s)"
    if dropped:
        msg += f"\n<i>{dropped} hidden torrent(s) removed from the selection.</i>"
    await reply_html(update, msg)


async def cmd_select(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    query = " ".join(context.args or []).strip().lower()
    if not query:
        await reply_html(update, "Usage: /select &lt;hash prefix|name&gt;")
        return
    matches = [
        r
        for r in session.view
        if r.hash.lower().startswith(query) or query in (r.name or "").lower()
    ]
    if not matches:
        await reply_html(update, "No matching torrents in the current view.")
        return
    lines = []
    for record in matches:
        selected = session.toggle(record.hash)
        lines.append(f"{'☑️' if selected else '▫️'} {html.escape(record.name or record.hash)}")
    lines.append(f"<i>{len(session.selection)} selected</i>")
    await reply_html(update, "\n".join(lines))


async def cmd_selectall(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    session.select_all()
    await reply_html(update, f"Selected {len(session.selection)} torrent(s).")


async def cmd_clear(update, context) -> None:
    if not await guard(update, context):
        return
    get_session(context).clear_selection()
    await reply_html(update, "Selection cleared.")


async def _run_mutation(update, context, operation: MutationOp, **params) -> None:
    session = get_session(context)
    if not session.selection:
        await reply_html(update, "Nothing selected. Use /list or /select first.")
        return
    try:
        result = await session.mutate(operation, **params)
    except Exception as e:
        await record_error(
            operation.value, "Mutation failed", e, update.message.reply_text, log=logger
        )
        return
    icon = "✅" if result.ok else "❌"
    await update.message.reply_text(
        f"{icon} {html.escape(result.message)}", parse_mode=ParseMode.HTML
    )


async def cmd_pause(update, context) -> None:
    if not await guard(update, context):
        return
    await _run_mutation(update, context, MutationOp.PAUSE)


async def cmd_resume(update, context) -> None:
    if not await guard(update, context):
        return
    await _run_mutation(update, context, MutationOp.RESUME)


async def cmd_recheck(update, context) -> None:
    if not await guard(update, context):
        return
    await _run_mutation(update, context, MutationOp.RECHECK)


async def cmd_delete(update, context) -> None:
    if not await guard(update, context):
        return
    session = get_session(context)
    args = [a.strip().lower() for a in (context.args or []) if a.strip()]
    delete_files = any(a in _DELETE_FILES_TOKENS for a in args)
    confirm = bool(args) and args[-1] in _CONFIRM_TOKENS
    if not confirm:
        names = [html.escape(r.name or r.hash) for r in session.selected_records[:25]]
        if not names:
            await reply_html(update, "Nothing selected. Use /list or /select first.")
            return
        what = "torrents <b>and their files</b>" if delete_files else "torrents"
        rerun = "/delete files yes" if delete_files else "/delete yes"
        await reply_html(
            update,
            "\n".join(f"• {n}" for n in names)
            + f"\n\n⚠️ This deletes {len(session.selection)} {what}. Re-run to confirm:\n"
            f"<code>{rerun}</code>",
        )
        return
    await _run_mutation(update, context, MutationOp.DELETE, delete_files=delete_files)


async def cmd_setcategory(update, context) -> None:
    if not await guard(update, context):
        return
    category = " ".join(context.args or []).strip()
    await _run_mutation(update, context, MutationOp.SET_CATEGORY, category=category)
