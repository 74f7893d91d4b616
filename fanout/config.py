"""Runtime settings read from the environment (a .env file is honored by server.py)."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_MAILBOX_SIZE = 1024
DEFAULT_HISTORY_SIZE = 100
DEFAULT_HEARTBEAT_INTERVAL_SEC = 30.0
DEFAULT_SEND_TIMEOUT_SEC = 5.0


def env_int(name: str, default: int) -> int:
    """Integer from env; malformed or missing values give the default."""
    try:
        return int(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default


def _log_level(name: str, default: int = logging.INFO) -> int:
    level = logging.getLevelName((os.environ.get(name) or "").strip().upper())
    return level if isinstance(level, int) else default


@dataclass(frozen=True)
class Settings:
    """Tunables for subjects, observers and the server."""

    mailbox_size: int = DEFAULT_MAILBOX_SIZE
    history_size: int = DEFAULT_HISTORY_SIZE
    log_level: int = logging.INFO
    heartbeat_interval_sec: float = DEFAULT_HEARTBEAT_INTERVAL_SEC
    send_timeout_sec: float = DEFAULT_SEND_TIMEOUT_SEC

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mailbox_size=max(0, env_int("FANOUT_MAILBOX_SIZE", DEFAULT_MAILBOX_SIZE)),
            history_size=max(0, env_int("FANOUT_HISTORY_SIZE", DEFAULT_HISTORY_SIZE)),
            log_level=_log_level("FANOUT_LOG_LEVEL"),
            heartbeat_interval_sec=env_float("HEARTBEAT_INTERVAL_SEC", DEFAULT_HEARTBEAT_INTERVAL_SEC),
            send_timeout_sec=env_float("FANOUT_SEND_TIMEOUT_SEC", DEFAULT_SEND_TIMEOUT_SEC),
        )


def get_settings(override: Optional[Settings] = None) -> Settings:
    """Return override if given, else a fresh read of the environment."""
    return override if override is not None else Settings.from_env()
