"""
Named locks shared between simulation code and the persistence engine.

Why this exists:
- The World is mutated by simulation/network threads while saves read it from
  the caller's thread, a debounced background thread or the autosave timer.
- Saves for one canonical file must be single-flight: two writers racing on the
  same path (or on the backup counter) is never allowed.
- Names let modules coordinate without passing lock objects around.

Usage:
    from concurrency_utils import atomic

    with atomic('world'):
        world.entity_data.entities[eid] = record

    with atomic(f'save:{canonical_path}'):
        ... write the file ...

Locks are re-entrant. Lock order: 'world' is never acquired while a save
lock is held. Saves take 'world' only to encode the snapshot and release it
before taking the save lock, so code holding 'world' may save.
"""

from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Iterator

_LOCKS: Dict[str, RLock] = {}
_LOCKS_GUARD = RLock()


def get_lock(name: str) -> RLock:
    """Return a process-wide lock for the given name, creating it if needed."""
    lk = _LOCKS.get(name)
    if lk is not None:
        return lk
    with _LOCKS_GUARD:
        lk = _LOCKS.get(name)
        if lk is None:
            lk = RLock()
            _LOCKS[name] = lk
        return lk


@contextmanager
def atomic(name: str) -> Iterator[None]:
    """Context manager that holds the named lock for the duration."""
    lk = get_lock(name)
    with lk:
        yield
