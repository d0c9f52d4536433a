"""Info commands: help with the live sync summary, chat identity, metrics."""

from __future__ import annotations

import logging

from .. import view
from ..commands import COMMANDS, GROUP_ORDER
from ..session import SyncSession
from .common import allowed, get_session, get_state, guard, reply_html

logger = logging.getLogger(__name__)


def _summary(session: SyncSession) -> str:
    return view.render_session_summary(
        session.status,
        session.view_size,
        len(session.selection),
        session.filter_value,
        session.search_text,
    )


async def cmd_start(update, context) -> None:
    if not await guard(update, context):
        return
    # Starts polling on first contact
    session = get_session(context)
    text = view.render_help(COMMANDS, GROUP_ORDER)
    await reply_html(update, f"{text}\n\n{_summary(session)}")


async def cmd_help(update, context) -> None:
    await cmd_start(update, context)


async def cmd_whoami(update, context) -> None:
    """Report the ids needed for ALLOWED_CHAT_IDS; works for any chat."""
    chat = update.effective_chat
    user = update.effective_user
    username = f"@{user.username}" if user and user.username else "(no username)"
    lines = [
        f"chat_id: {view.code(chat.id)} ({view.code(chat.type)})",
        f"user: {view.code(username)}",
        "allowed: yes" if allowed(update) else "allowed: no, add the chat_id to ALLOWED_CHAT_IDS",
    ]
    await reply_html(update, "\n".join(lines))


async def cmd_metrics(update, context) -> None:
    if not await guard(update, context):
        return
    state = get_state(context.application)
    text = view.render_command_metrics(state.command_metrics)
    # Never start polling just to report metrics
    if state.session is not None:
        text = f"{text}\n\n{_summary(state.session)}"
    await reply_html(update, text)
