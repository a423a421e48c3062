"""Server configuration consumed by the persistence engine.

Values come from environment variables (optionally seeded from a .env file via
python-dotenv). Unparseable or out-of-range numbers fall back to their defaults
rather than stopping the server.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv

import constants as C
from security_utils import redact_sensitive

logger = logging.getLogger(__name__)


def env_str(name: str, default: str) -> str:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.strip()
    return val or default


def env_int(name: str, default: int, *, minimum: int = 1) -> int:
    """Read an int from the environment; values below `minimum` use the default."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw.strip())
    except (TypeError, ValueError):
        logger.warning(f"Ignoring {name}={raw!r}: not an integer (using {default})")
        return default
    if val < minimum:
        logger.warning(f"Ignoring {name}={val}: must be >= {minimum} (using {default})")
        return default
    return val


@dataclass
class ServerConfig:
    save_dir: str = C.DEFAULT_SAVE_DIR
    save_name: str = C.DEFAULT_SAVE_NAME
    file_extension: str = C.DEFAULT_SAVE_EXTENSION
    backup_interval: int = C.DEFAULT_BACKUP_INTERVAL
    hold_backups: int = C.DEFAULT_HOLD_BACKUPS
    game_mode: str = C.DEFAULT_GAME_MODE
    server_password: str = ""
    admin_password: str = ""
    save_interval_ms: int = C.DEFAULT_SAVE_INTERVAL_MS
    save_debounce_ms: int = C.DEFAULT_SAVE_DEBOUNCE_MS

    def __post_init__(self) -> None:
        if self.backup_interval < 1:
            raise ValueError("backup_interval must be a positive integer")
        if self.hold_backups < 1:
            raise ValueError("hold_backups must be a positive integer")
        if not self.save_name:
            raise ValueError("save_name must not be empty")
        self.file_extension = self.file_extension.lstrip(".") or C.DEFAULT_SAVE_EXTENSION

    @property
    def canonical_path(self) -> str:
        return os.path.join(self.save_dir, C.canonical_file_name(self.save_name, self.file_extension))

    def redacted(self) -> Dict[str, Any]:
        """Return the config as a dict with credentials masked, for logging."""
        return redact_sensitive(asdict(self))


def load_config(env_file: Optional[str] = None) -> ServerConfig:
    """Build a ServerConfig from the environment (and .env if present)."""
    load_dotenv(env_file)
    return ServerConfig(
        save_dir=env_str(C.ENV_SAVE_DIR, C.DEFAULT_SAVE_DIR),
        save_name=env_str(C.ENV_SAVE_NAME, C.DEFAULT_SAVE_NAME),
        file_extension=env_str(C.ENV_SAVE_EXTENSION, C.DEFAULT_SAVE_EXTENSION),
        backup_interval=env_int(C.ENV_BACKUP_INTERVAL, C.DEFAULT_BACKUP_INTERVAL),
        hold_backups=env_int(C.ENV_HOLD_BACKUPS, C.DEFAULT_HOLD_BACKUPS),
        game_mode=env_str(C.ENV_GAME_MODE, C.DEFAULT_GAME_MODE),
        server_password=os.getenv(C.ENV_SERVER_PASSWORD, ""),
        admin_password=os.getenv(C.ENV_ADMIN_PASSWORD, ""),
        save_interval_ms=env_int(C.ENV_SAVE_INTERVAL_MS, C.DEFAULT_SAVE_INTERVAL_MS, minimum=0),
        save_debounce_ms=env_int(C.ENV_SAVE_DEBOUNCE_MS, C.DEFAULT_SAVE_DEBOUNCE_MS, minimum=0),
    )
