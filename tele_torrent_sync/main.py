"""Entrypoint for running the Telegram bot from the package.

This module wires up the Application, registers handlers, starts the
qBittorrent sync session and runs polling.
"""

from __future__ import annotations

import logging

from telegram import BotCommand
from telegram.ext import Application, CallbackQueryHandler, CommandHandler

from . import config
from .background import ensure_started, shutdown
from .commands import COMMANDS
from .handlers import dispatch
from .handlers.callbacks import handle_callback_query
from .logger import setup_logging
from .models.bot_state import BOT_STATE_KEY, BotState

logger = logging.getLogger(__name__)


def build_application() -> Application:
    if config.TOKEN is None:
        raise RuntimeError("BOT_TOKEN environment variable is not set")

    app = (
        Application.builder()
        .token(config.TOKEN)
        .post_init(on_startup)
        .post_shutdown(shutdown)
        .build()
    )

    app.bot_data.setdefault(BOT_STATE_KEY, BotState())

    for spec in COMMANDS:
        fn = getattr(dispatch, spec.handler)
        triggers = [spec.name, *spec.aliases]
        app.add_handler(CommandHandler(triggers, fn))

    # Register callback query handler for inline keyboards
    app.add_handler(CallbackQueryHandler(handle_callback_query))

    return app


async def register_bot_commands(app: Application) -> None:
    """Register bot commands for Telegram autocomplete."""
    try:
        bot_commands = [BotCommand(spec.name, spec.description) for spec in COMMANDS]
        await app.bot.set_my_commands(bot_commands)
        logger.info("Registered %d commands for autocomplete", len(bot_commands))
    except Exception as e:
        logger.warning("Failed to register bot commands: %s", e)


async def on_startup(app: Application) -> None:
    """Start the sync session and register commands."""
    ensure_started(app)
    await register_bot_commands(app)


def run() -> None:
    setup_logging()
    logger.info("Starting tele_torrent_sync")
    app = build_application()

    # run polling; keep the stop_signals None so container shutdown behaves normally
    app.run_polling(stop_signals=None)


if __name__ == "__main__":
    run()
