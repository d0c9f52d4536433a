"""Shared handler helpers: chat allowlist, rate limit, session access."""

from __future__ import annotations

import functools
import html
import logging
import time
from typing import TYPE_CHECKING, Callable

from telegram.constants import ParseMode

from .. import config, view
from ..background import ensure_started
from ..models.bot_state import BOT_STATE_KEY, BotState
from ..session import SyncSession

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from telegram import Update
    from telegram.ext import ContextTypes


NOT_AUTHORIZED = "⛔ Not authorized. Send /whoami to see this chat's id."

# Monotonic time of the last command that ran, shared by every command.
_last_command_ts = 0.0


def get_state(app) -> BotState:
    """Return the bot state stored in `app.bot_data`, creating it once."""
    return app.bot_data.setdefault(BOT_STATE_KEY, BotState())


def get_session(context) -> SyncSession:
    """Return the running sync session, creating it on first use."""
    state = get_state(context.application)
    if state.session is not None:
        return state.session
    return ensure_started(context.application)


async def record_error(
    command: str,
    message: str,
    exc: Exception,
    reply,
    log: logging.Logger | None = None,
):
    (log or logger).exception("%s (%s)", message, command)
    await reply(f"❌ Error: {html.escape(str(exc))}", parse_mode=ParseMode.HTML)


def allowed(update: "Update") -> bool:
    """Whether the sender may drive the torrent client.

    Only private chats qualify: the chat id must equal the user id and be
    listed in ALLOWED_CHAT_IDS. Updates without a user (channel posts) fall
    back to the chat id alone. An empty allowlist rejects everyone.
    """
    chat = getattr(update, "effective_chat", None)
    if not config.ALLOWED or chat is None:
        return False
    user_id = getattr(getattr(update, "effective_user", None), "id", None)
    if user_id is None:
        return chat.id in config.ALLOWED
    return chat.id == user_id and user_id in config.ALLOWED


async def guard(update: "Update", context: "ContextTypes.DEFAULT_TYPE") -> bool:
    """Return True for allowed senders; tell everyone else they are not."""
    if allowed(update):
        return True
    chat = getattr(update, "effective_chat", None)
    if chat is not None:
        logger.warning("Rejected command from chat %s", chat.id)
        await chat.send_message(NOT_AUTHORIZED)
    return False


def _wait_left(now: float) -> float:
    return config.RATE_LIMIT_S - (now - _last_command_ts)


def rate_limit(func: Callable, name: str | None = None) -> Callable:
    """Wrap a command handler with the global rate limit and command metrics.

    A call arriving less than `config.RATE_LIMIT_S` after the previous
    command is answered with the remaining wait and counted as rate
    limited. Every call that runs is timed and recorded as a success or an
    error; errors are re-raised for the application's error handler.
    """

    command_name = name or func.__name__.removeprefix("cmd_")

    @functools.wraps(func)
    async def wrapper(
        update: "Update", context: "ContextTypes.DEFAULT_TYPE", *args, **kwargs
    ):
        global _last_command_ts
        state = get_state(context.application)
        now = time.monotonic()
        wait = _wait_left(now)
        if wait > 0:
            message = getattr(update, "effective_message", None)
            if message is not None:
                await message.reply_text(f"⏱ Rate limit: please wait {wait:.1f}s")
            state.record_rate_limited(command_name)
            return None

        _last_command_ts = now
        start = time.perf_counter()
        error: str | None = None
        try:
            return await func(update, context, *args, **kwargs)
        except Exception as e:
            error = str(e)
            raise
        finally:
            state.record_command(
                command_name,
                time.perf_counter() - start,
                ok=error is None,
                error_msg=error,
            )

    return wrapper


async def reply_html(update: "Update", text: str, **kwargs) -> None:
    parts = view.chunk(text)
    for i, part in enumerate(parts):
        # Keyboard goes on the last part only
        extra = kwargs if i == len(parts) - 1 else {}
        await update.message.reply_text(part, parse_mode=ParseMode.HTML, **extra)
