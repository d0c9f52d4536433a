"""Central configuration for tele_torrent_sync."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Set

from .models.session_config import SessionConfig

logger = logging.getLogger(__name__)


def _split_ints(s: str) -> Set[int]:
    """Parse comma-separated string into a set of integers.

    Args:
        s: Comma-separated string of integers (e.g., "123,456,789")

    Returns:
        Set of parsed integers. Invalid entries are silently skipped.

    Example:
        >>> _split_ints("123,456,invalid,789")
        {123, 456, 789}
    """
    out = set()
    for part in (s or "").split(","):
        p = part.strip()
        if p.isdigit():
            out.add(int(p))
    return out


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, "") or default)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass
class Settings:
    """Configuration settings for tele_torrent_sync.

    All settings are loaded from environment variables with sensible defaults.
    """

    BOT_TOKEN: str | None
    ALLOWED_CHAT_IDS: Set[int]
    RATE_LIMIT_S: float
    QBT_URL: str
    QBT_USER: str
    QBT_PASS: str
    QBT_TIMEOUT_S: float
    POLL_INTERVAL_S: float
    CATEGORY_POLL_EVERY: int


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Note:
        Invalid numeric values fall back to defaults. `QBT_URL` wins over
        `QBT_HOST`/`QBT_PORT` when both are given.
    """
    token = os.environ.get("BOT_TOKEN") or None
    allowed = _split_ints(os.environ.get("ALLOWED_CHAT_IDS", ""))
    rate_limit = _float_env("RATE_LIMIT_S", 1.0)

    # qBittorrent
    qbt_url = (os.environ.get("QBT_URL") or "").strip().rstrip("/")
    if not qbt_url:
        qbt_host = os.environ.get("QBT_HOST") or "qbittorrent"
        qbt_port = _int_env("QBT_PORT", 8080)
        qbt_url = f"http://{qbt_host}:{qbt_port}"
    qbt_user = os.environ.get("QBT_USER") or "admin"
    qbt_pass = os.environ.get("QBT_PASS") or "adminadmin"
    qbt_timeout = _float_env("QBT_TIMEOUT_S", 8.0)

    # Sync loop
    poll_interval = _float_env("POLL_INTERVAL_S", 5.0)
    if poll_interval <= 0:
        poll_interval = 5.0
    category_every = _int_env("CATEGORY_POLL_EVERY", 6)
    if category_every < 0:
        category_every = 6

    return Settings(
        BOT_TOKEN=token,
        ALLOWED_CHAT_IDS=allowed,
        RATE_LIMIT_S=rate_limit,
        QBT_URL=qbt_url,
        QBT_USER=qbt_user,
        QBT_PASS=qbt_pass,
        QBT_TIMEOUT_S=qbt_timeout,
        POLL_INTERVAL_S=poll_interval,
        CATEGORY_POLL_EVERY=category_every,
    )


settings = _read_settings()


def session_config(s: Settings | None = None) -> SessionConfig:
    """Build the qBittorrent session config from settings."""
    s = s or settings
    return SessionConfig(
        base_url=s.QBT_URL,
        username=s.QBT_USER,
        password=s.QBT_PASS,
        timeout_s=s.QBT_TIMEOUT_S,
    )


def validate_settings() -> None:
    """Validate critical configuration and log warnings for issues."""
    if settings.BOT_TOKEN is None:
        logger.error("BOT_TOKEN environment variable is not set")
    if not settings.ALLOWED_CHAT_IDS:
        logger.warning(
            "ALLOWED_CHAT_IDS is empty; guarded commands will be unauthorized."
        )


# Exported constants
TOKEN: str | None = settings.BOT_TOKEN
ALLOWED: set[int] = settings.ALLOWED_CHAT_IDS
RATE_LIMIT_S: float = settings.RATE_LIMIT_S
POLL_INTERVAL_S: float = settings.POLL_INTERVAL_S
CATEGORY_POLL_EVERY: int = settings.CATEGORY_POLL_EVERY

validate_settings()
