"""Connection settings handed to the poller."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SessionConfig:
    """Base URL and credentials for one qBittorrent WebUI session."""

    base_url: str
    username: str
    password: str = field(repr=False)
    timeout_s: float = 8.0

    @property
    def is_complete(self) -> bool:
        return bool(self.base_url and self.username)
