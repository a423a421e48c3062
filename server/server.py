from __future__ import annotations

"""
World server process entry point.

What this file does:
- Reads the configuration (environment variables, optional .env file).
- Loads the saved world, or starts a fresh one if there is no usable save.
- Keeps the world saved: an autosave timer runs every WORLD_SAVE_INTERVAL_MS and
  a final save is written on shutdown (Ctrl+C).

The network and simulation layers plug in by calling bootstrap() and then
persistence_utils.save_world(persistence, world) whenever they change the world.

Maintenance commands (run from the repo root):

    python server/server.py --purge --yes     delete the save and all backups
    python server/server.py --list-backups    show backups, newest first
    python server/server.py --once            load (or create) the world, save it, exit

Without --yes, --purge asks for confirmation on stdin.
"""

import json
import logging
import os
import sys
import time
from typing import Callable, Iterable, Optional, Set, Tuple

import constants as C
from autosave import AutoSaver
from config import ServerConfig, load_config
from persistence_utils import flush_all_saves, get_save_stats, save_world
from safe_utils import safe_call
from serializer import SnapshotSerializer
from world import World
from world_factory import SpawnCatalog
from world_persistence import WorldPersistence

logger = logging.getLogger(__name__)


# Structured logging (env-driven):
# - WORLD_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR|CRITICAL (default INFO)
# - WORLD_LOG_FORMAT: 'json' or 'text' (default text)
class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            'ts': self.formatTime(record, datefmt='%Y-%m-%dT%H:%M:%S'),
            'level': record.levelname,
            'name': record.name,
            'message': record.getMessage(),
        }
        return json.dumps(payload, ensure_ascii=False)


def _setup_logging() -> None:
    def _configure_logging():
        level_name = (os.getenv(C.ENV_LOG_LEVEL) or C.LOG_LEVEL_DEFAULT).strip().upper()
        level = getattr(logging, level_name, logging.INFO)
        fmt_mode = (os.getenv(C.ENV_LOG_FORMAT) or 'text').strip().lower()
        if fmt_mode == 'json':
            handler = logging.StreamHandler()
            handler.setFormatter(_JsonFormatter())
            root = logging.getLogger()
            root.handlers = [handler]
            root.setLevel(level)
        else:
            logging.basicConfig(level=level, format=C.DEFAULT_LOG_FORMAT)

    safe_call(_configure_logging)


def bootstrap(config: Optional[ServerConfig] = None,
              catalog: Optional[SpawnCatalog] = None) -> Tuple[World, WorldPersistence]:
    """Load (or create) the world. Never fails because of the save file."""
    config = config or load_config()
    logger.info(f"Server configuration: {config.redacted()}")
    persistence = WorldPersistence(SnapshotSerializer(), config, catalog=catalog)
    world = persistence.load()
    logger.info("To get help for commands, run help in console or /help in chatbox")
    return world, persistence


def _flags(argv: Iterable[str]) -> Set[str]:
    # Accept any casing and both single- and double-dash forms
    return {'--' + str(a).strip().lower().lstrip('-') for a in argv}


def _confirm_purge(auto_yes: bool, input_fn: Callable[[str], str]) -> bool:
    if auto_yes:
        return True
    print("Are you sure you want to purge the world and all backups? This cannot be undone.")
    try:
        ans = input_fn("Type 'Y' to confirm or 'N' to cancel: ")
    except EOFError:
        return False
    return ans.strip().lower() in C.CONFIRM_YES


def _run_until_interrupted(persistence: WorldPersistence, world: World, config: ServerConfig) -> None:
    autosaver = AutoSaver(persistence, world, config.save_interval_ms)
    try:
        autosaver.start()
        print("World server running. Press Ctrl+C to stop.")
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("Shutting down...")
    finally:
        autosaver.stop()
        flush_all_saves()
        save_world(persistence, world, debounced=False)


def main(argv: Optional[Iterable[str]] = None,
         config: Optional[ServerConfig] = None,
         input_fn: Callable[[str], str] = input) -> int:
    flags = _flags(sys.argv[1:] if argv is None else argv)
    _setup_logging()
    config = config or load_config()

    if '--purge' in flags:
        if not _confirm_purge('--yes' in flags or '--y' in flags, input_fn):
            print("Purge cancelled.")
            return 1
        removed = WorldPersistence(SnapshotSerializer(), config).purge()
        print(f"Purged {removed} file(s) from {config.save_dir}.")
        return 0

    if '--list-backups' in flags:
        backups = WorldPersistence(SnapshotSerializer(), config).list_backups()
        if not backups:
            print("No backups found.")
        for path in backups:
            print(path)
        return 0

    world, persistence = bootstrap(config)

    if '--once' in flags:
        errors_before = get_save_stats()['errors']
        save_world(persistence, world, debounced=False)
        return 0 if get_save_stats()['errors'] == errors_before else 1

    _run_until_interrupted(persistence, world, config)
    return 0


if __name__ == '__main__':
    sys.exit(main())
