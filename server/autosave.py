"""Periodic autosave.

A single daemon thread named 'world-autosave' calls save_world() every
`interval_ms`. Starting twice is a no-op; stop() wakes the thread immediately.
The timer is suppressed under TEST_MODE=1 unless force=True is passed.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Optional

import constants as C
from persistence_utils import save_world

logger = logging.getLogger(__name__)


class AutoSaver:
    def __init__(self, persistence, world, interval_ms: int) -> None:
        self.persistence = persistence
        self.world = world
        self.interval_s = max(0.0, interval_ms / 1000.0)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, *, force: bool = False) -> bool:
        """Start the timer thread; returns False if disabled or already running."""
        if self.interval_s <= 0:
            logger.info("Autosave disabled (interval is 0)")
            return False
        if os.getenv(C.ENV_TEST_MODE) == '1' and not force:
            return False
        if self.running:
            return False
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='world-autosave', daemon=True)
        self._thread.start()
        logger.info(f"Autosave every {self.interval_s:g}s")
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self.ticks += 1
            save_world(self.persistence, self.world, debounced=False)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)
        self._thread = None
