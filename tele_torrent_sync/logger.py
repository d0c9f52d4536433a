"""Logging helpers for tele_torrent_sync
"""
import logging
import os


def setup_logging() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    # Every poll is an HTTP request; keep client libraries quiet
    for name in ("httpx", "httpcore", "telegram", "urllib3", "qbittorrentapi"):
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["setup_logging"]
