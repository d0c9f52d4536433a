"""Callback query handlers for the /list inline keyboard."""

from __future__ import annotations

import html
import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest

from .. import view
from ..models.record import TorrentRecord
from ..session import SyncSession
from .common import NOT_AUTHORIZED, allowed, get_session, get_state

logger = logging.getLogger(__name__)

_LABEL_MAX = 40


async def _safe_edit_message_text(query, text: str, **kwargs) -> None:
    try:
        await query.edit_message_text(text, **kwargs)
    except BadRequest as exc:
        if "Message is not modified" in str(exc):
            return
        raise


def _label(record: TorrentRecord, selected: bool) -> str:
    name = record.name or view.short_hash(record.hash)
    if len(name) > _LABEL_MAX:
        name = f"{name[: _LABEL_MAX - 3]}..."
    return f"{'☑️' if selected else '▫️'} {name}"


def build_list_keyboard(
    records: list[TorrentRecord] | tuple[TorrentRecord, ...],
    selected: frozenset[str],
    page: int,
) -> InlineKeyboardMarkup:
    """One toggle button per torrent on the page plus paging/selection rows."""
    page, total_pages = view.page_bounds(len(records), page)
    buttons = [
        [
            InlineKeyboardButton(
                _label(r, r.hash in selected), callback_data=f"sel:{page}:{r.hash}"
            )
        ]
        for r in view.page_slice(records, page)
    ]
    nav = []
    if page > 0:
        nav.append(InlineKeyboardButton("⬅️", callback_data=f"list:page:{page - 1}"))
    nav.append(InlineKeyboardButton("🔄 Refresh", callback_data=f"list:page:{page}"))
    if page < total_pages - 1:
        nav.append(InlineKeyboardButton("➡️", callback_data=f"list:page:{page + 1}"))
    buttons.append(nav)
    buttons.append(
        [
            InlineKeyboardButton("✅ Select all", callback_data=f"list:all:{page}"),
            InlineKeyboardButton("✖️ Clear", callback_data=f"list:clear:{page}"),
        ]
    )
    return InlineKeyboardMarkup(buttons)


def render_list_page(session: SyncSession, page: int) -> tuple[str, InlineKeyboardMarkup]:
    records = session.view
    page, _ = view.page_bounds(len(records), page)
    text = view.render_torrent_list(
        records,
        session.selection,
        filter_value=session.filter_value,
        search_text=session.search_text,
        page=page,
    )
    return text, build_list_keyboard(records, session.selection, page)


def _parse_page(raw: str) -> int:
    try:
        return max(0, int(raw))
    except ValueError:
        return 0


async def _show_page(query, context, page: int) -> None:
    session = get_session(context)
    chat = getattr(query.message, "chat", None)
    if chat is not None:
        get_state(context.application).list_pages[chat.id] = page
    text, keyboard = render_list_page(session, page)
    await _safe_edit_message_text(
        query, text, parse_mode=ParseMode.HTML, reply_markup=keyboard
    )


async def _handle_toggle(query, context, payload: str) -> None:
    page_raw, _, torrent_hash = payload.partition(":")
    session = get_session(context)
    if torrent_hash not in {r.hash for r in session.view} and not session.is_selected(
        torrent_hash
    ):
        await query.message.reply_text("❌ That torrent is no longer in the view.")
    else:
        session.toggle(torrent_hash)
    await _show_page(query, context, _parse_page(page_raw))


async def handle_callback_query(update, context) -> None:
    query = update.callback_query
    await query.answer()

    data = query.data or ""

    if not allowed(update):
        await _safe_edit_message_text(query, NOT_AUTHORIZED)
        return

    try:
        if data.startswith("sel:"):
            await _handle_toggle(query, context, data[len("sel:") :])
        elif data.startswith("list:page:"):
            await _show_page(query, context, _parse_page(data[len("list:page:") :]))
        elif data.startswith("list:all:"):
            get_session(context).select_all()
            await _show_page(query, context, _parse_page(data[len("list:all:") :]))
        elif data.startswith("list:clear:"):
            get_session(context).clear_selection()
            await _show_page(query, context, _parse_page(data[len("list:clear:") :]))
        else:
            await _safe_edit_message_text(query, "❓ Unknown action")
    except Exception as e:
        logger.exception("Callback query error")
        try:
            await query.message.reply_text(f"❌ Error: {html.escape(str(e))}")
        except Exception as notify_error:
            logger.error(f"Failed to send error notification: {notify_error}")
