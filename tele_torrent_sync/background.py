"""Background sync session (started once per Application)."""
from __future__ import annotations

import logging

from telegram.ext import Application

from . import config
from .models.bot_state import BOT_STATE_KEY, BotState
from .session import SyncSession
from .transport import QbtTransport

logger = logging.getLogger(__name__)


def _get_state(app: Application) -> BotState:
    return app.bot_data.setdefault(BOT_STATE_KEY, BotState())


def build_session() -> SyncSession:
    return SyncSession(
        QbtTransport(),
        config.session_config(),
        interval_s=config.POLL_INTERVAL_S,
        category_every=config.CATEGORY_POLL_EVERY,
    )


def ensure_started(app: Application) -> SyncSession:
    """Create the sync session on first use and make sure it is polling."""
    state = _get_state(app)
    if state.session is None:
        state.session = build_session()
        logger.info(
            "Created sync session for %s (interval=%ss)",
            state.session.poller.config.base_url if state.session.poller.config else "-",
            config.POLL_INTERVAL_S,
        )
    state.session.start()
    return state.session


async def shutdown(app: Application) -> None:
    state = _get_state(app)
    session, state.session = state.session, None
    if session is None:
        return
    try:
        await session.stop()
    except Exception:
        logger.exception("Failed to stop sync session cleanly")
