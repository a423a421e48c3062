"""
Safe execution helpers for best-effort persistence chores.

Cleanup work around saving (removing a stale temp file, deleting an old backup)
must never abort a save, but silently ignoring it hides real disk problems.
These helpers log the first occurrence of each (function, exception type) pair
and return a default afterwards.

Environment Opt-In (Debug Raising):
    Set WORLD_DEBUG_RAISE to '1', 'true', 'yes' or 'on' to re-raise after the
    first (still logged) occurrence. Read at call time, so tests can toggle it
    with monkeypatch.setenv.

Usage:
    safe_call(os.remove, tmp_path)
    mtime = safe_call_with_default(os.path.getmtime, None, path)
"""

import logging
import os
from typing import Callable, Optional, Set, TypeVar

# Track seen exception types to log each unique type only once per session
_seen_exceptions: Set[str] = set()

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _debug_raise_enabled() -> bool:
    val = os.getenv('WORLD_DEBUG_RAISE', '').strip().lower()
    return val in ('1', 'true', 'yes', 'on')


def _fn_name(fn: Callable) -> str:
    return getattr(fn, '__name__', None) or str(fn)


def _log_once(caller: str, fn: Callable, e: Exception, detail: str) -> None:
    exc_type = type(e).__name__
    exc_key = f"{_fn_name(fn)}:{exc_type}"
    if exc_key in _seen_exceptions:
        return
    _seen_exceptions.add(exc_key)
    logger.warning(
        f"{caller}: {_fn_name(fn)} failed with {exc_type}: {e} ({detail})"
    )


def safe_call(fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
    """Run fn, returning None instead of raising.

    The first failure of each exception type per function is logged at warning
    level; later ones are silent.
    """
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        _log_once("safe_call", fn, e, f"subsequent {type(e).__name__} exceptions from this function will be silent")
        if _debug_raise_enabled():
            raise
        return None


def safe_call_with_default(fn: Callable[..., T], default: T, *args, **kwargs) -> T:
    """Like safe_call, but returns `default` on failure."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        _log_once("safe_call_with_default", fn, e, f"returning default: {default}")
        if _debug_raise_enabled():
            raise
        return default


def reset_seen_exceptions() -> None:
    """Reset the set of seen exceptions (used by tests)."""
    _seen_exceptions.clear()
