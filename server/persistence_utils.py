"""
persistence_utils.py: Centralized persistence façade for world state.

KEY CONTRACT: game code saves the World through save_world(), never by
calling WorldPersistence.save() directly. That keeps one place in control of
debouncing and of the save statistics.

Public API:
- save_world(persistence, world, debounced=True): standard save, optionally debounced.
- flush_all_saves(): force pending debounced saves to disk (shutdown/critical).
- get_save_stats(): counters for monitoring/debugging.
- reset_savers(): drop cached savers and zero the counters (tests).

Design:
- One DebouncedSaver per canonical save path, created on first use and cached
  in the module-level _savers dict. The saver always writes the most recent
  World handed to save_world() for that path.
- Debounce window comes from WORLD_SAVE_DEBOUNCE_MS (default 300ms).
- WorldPersistence.save() never raises; failures only show up in the stats.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, Tuple

import constants as C
from config import env_int
from debounced_saver import DebouncedSaver

# canonical path -> saver, and canonical path -> (persistence, latest world)
_savers: Dict[str, DebouncedSaver] = {}
_targets: Dict[str, Tuple[Any, Any]] = {}
_registry_lock = threading.Lock()

_stats: Dict[str, Any] = {
    'debounced_calls': 0,
    'immediate_calls': 0,
    'errors': 0,
    'last_save_time': None,
}


def _get_interval_ms() -> int:
    return env_int(C.ENV_SAVE_DEBOUNCE_MS, C.DEFAULT_SAVE_DEBOUNCE_MS, minimum=0)


def save_world(persistence, world, debounced: bool = True) -> None:
    """Persist the World through the façade.

    Args:
        persistence: the WorldPersistence that owns the save file.
        world: the World to save.
        debounced: coalesce rapid saves (default). Pass False for saves that
            must be on disk before continuing (shutdown, admin commands).
    """
    if not debounced:
        _stats['immediate_calls'] += 1
        _save_world_immediate(persistence, world)
        return

    _stats['debounced_calls'] += 1
    path = persistence.canonical_path
    with _registry_lock:
        _targets[path] = (persistence, world)
        saver = _savers.get(path)
        if saver is None:
            saver = DebouncedSaver(lambda: _flush_target(path), interval_ms=_get_interval_ms())
            _savers[path] = saver
    saver.debounce()


def _flush_target(path: str) -> None:
    target = _targets.get(path)
    if target is None:
        return
    persistence, world = target
    _save_world_immediate(persistence, world)


def _save_world_immediate(persistence, world) -> None:
    if persistence.save(world):
        _stats['last_save_time'] = time.time()
    else:
        _stats['errors'] += 1


def flush_all_saves() -> None:
    """Write every pending debounced save now. Safe to call repeatedly.

    Do not call while holding atomic(WORLD_LOCK): a background flush may be
    waiting for that lock while holding the saver's flush lock.
    """
    with _registry_lock:
        savers = list(_savers.values())
    for saver in savers:
        saver.flush_pending()


def get_save_stats() -> Dict[str, Any]:
    """Return persistence statistics.

    Keys: debounced_calls, immediate_calls, errors (failed saves), last_save_time
    (unix time of the last successful save or None), active_savers.
    """
    return {
        **_stats,
        'active_savers': len(_savers),
    }


def reset_savers() -> None:
    with _registry_lock:
        _savers.clear()
        _targets.clear()
    _stats.update(debounced_calls=0, immediate_calls=0, errors=0, last_save_time=None)
