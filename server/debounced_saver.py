"""debounced_saver.py: Coalesce bursts of save requests into one background save.

Design:
- debounce(): schedules a save soon; repeated calls within the window reset the timer.
- flush(): perform an immediate save (used on shutdown or critical updates).
- flush_pending(): save only if a debounced save is still scheduled (registered atexit).

The save function itself runs under a lock, so a background flush and an
explicit flush never overlap.
"""

from __future__ import annotations

import atexit
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DebouncedSaver:
    def __init__(self, save_fn: Callable[[], None], *, interval_ms: int = 300) -> None:
        self._save_fn = save_fn
        self._interval_s = max(0.0, float(interval_ms) / 1000.0)
        self._next_deadline: Optional[float] = None
        self._armed = False
        self._state_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        atexit.register(self.flush_pending)

    @property
    def pending(self) -> bool:
        return self._armed

    def debounce(self) -> None:
        with self._state_lock:
            self._next_deadline = time.time() + self._interval_s
            if self._armed:
                return
            self._armed = True
        t = threading.Thread(target=self._wait_and_flush, name='debounced-saver', daemon=True)
        t.start()

    def _wait_and_flush(self) -> None:
        # Polling wait that follows resets of _next_deadline
        try:
            while True:
                nd = self._next_deadline
                if nd is None:
                    break
                dt = nd - time.time()
                if dt <= 0:
                    break
                time.sleep(min(0.05, dt))
        finally:
            self.flush_pending()

    def flush_pending(self) -> None:
        if self._armed:
            self.flush()

    def flush(self) -> None:
        with self._state_lock:
            self._next_deadline = None
            self._armed = False
        with self._flush_lock:
            try:
                self._save_fn()
            except Exception as e:
                logger.error(f"Debounced save failed: {e}")
