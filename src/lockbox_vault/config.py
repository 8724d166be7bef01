# Configuration
#
# Settings are read from environment variables. An optional .env file in
# the working directory is loaded first (python-dotenv); variables already
# present in the environment win over the file.
#
#   LOCKBOX_DB_PATH               SQLite file            (data/lockbox.db)
#   LOCKBOX_AUDIT_DIR             audit log directory    (audit_logs)
#   LOCKBOX_TICK_INTERVAL         reconcile period, s    (1.0)
#   LOCKBOX_DEFAULT_UNLOCK_DELAY  new lockbox default, s (60)
#   LOCKBOX_DEFAULT_RELOCK_DELAY  new lockbox default, s (3600)
#   LOCKBOX_LOG_LEVEL             stdlib logging level   (INFO)

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .exceptions import ConfigError

DEFAULT_UNLOCK_DELAY_SECONDS = 60
DEFAULT_RELOCK_DELAY_SECONDS = 3600


@dataclass(frozen=True)
class LockboxConfig:
    """Runtime settings for the vault."""

    db_path: Path = Path("data/lockbox.db")
    audit_dir: Path = Path("audit_logs")
    tick_interval: float = 1.0
    default_unlock_delay: int = DEFAULT_UNLOCK_DELAY_SECONDS
    default_relock_delay: int = DEFAULT_RELOCK_DELAY_SECONDS
    log_level: str = "INFO"


def _read_number(env: Mapping[str, str], name: str, default, kind):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = kind(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a {kind.__name__}, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> LockboxConfig:
    """Build a LockboxConfig from the environment.

    Args:
        env: Mapping to read from. Defaults to os.environ.
        dotenv: Load a .env file into os.environ first (ignored when env is given).

    Raises:
        ConfigError: If a numeric setting does not parse or is negative.
    """
    if env is None:
        env_path = Path.cwd() / ".env"
        if dotenv and env_path.exists():
            load_dotenv(env_path, override=False)
        env = os.environ

    log_level = env.get("LOCKBOX_LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"LOCKBOX_LOG_LEVEL is not a logging level: {log_level!r}")

    tick_interval = _read_number(env, "LOCKBOX_TICK_INTERVAL", 1.0, float)
    if tick_interval == 0:
        raise ConfigError("LOCKBOX_TICK_INTERVAL must be greater than zero")

    return LockboxConfig(
        db_path=Path(env.get("LOCKBOX_DB_PATH") or "data/lockbox.db"),
        audit_dir=Path(env.get("LOCKBOX_AUDIT_DIR") or "audit_logs"),
        tick_interval=tick_interval,
        default_unlock_delay=_read_number(
            env, "LOCKBOX_DEFAULT_UNLOCK_DELAY", DEFAULT_UNLOCK_DELAY_SECONDS, int
        ),
        default_relock_delay=_read_number(
            env, "LOCKBOX_DEFAULT_RELOCK_DELAY", DEFAULT_RELOCK_DELAY_SECONDS, int
        ),
        log_level=log_level,
    )


# ── Singleton ────────────────────────────────────────────────────────

_config: Optional[LockboxConfig] = None


def get_config() -> LockboxConfig:
    """Get or load the process-wide configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[LockboxConfig]) -> None:
    """Replace the singleton (for testing)."""
    global _config
    _config = config
