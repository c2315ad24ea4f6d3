"""
Debouncer Module

Trailing-edge debounce for bulk saves: each key keeps only the latest
pending call, which runs once no new call arrived for `delay_ms`.
"""

import threading
from typing import Callable, Dict, List

from infrastructure.logger import get_logger

logger = get_logger("Debouncer")


class Debouncer:
    """
    Keyed trailing-edge debouncer backed by threading.Timer.

    A delay of 0 runs calls synchronously, which keeps tests deterministic.
    """

    def __init__(self, delay_ms: int = 500, timer_factory=threading.Timer):
        self.delay_ms = delay_ms
        self._timer_factory = timer_factory
        self._pending: Dict[str, Callable[[], None]] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def pending_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._pending)

    def call(self, key: str, fn: Callable[[], None]) -> None:
        """Schedule `fn` under `key`, replacing any call still waiting for that key."""
        if self.delay_ms <= 0:
            self._run(key, fn)
            return

        with self._lock:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            self._pending[key] = fn
            timer = self._timer_factory(self.delay_ms / 1000.0, self._fire, args=(key,))
            timer.daemon = True
            self._timers[key] = timer
        timer.start()

    def _fire(self, key: str) -> None:
        with self._lock:
            fn = self._pending.pop(key, None)
            self._timers.pop(key, None)
        if fn is not None:
            self._run(key, fn)

    def _run(self, key: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as e:
            logger.error(f"Simpan tertunda '{key}' gagal: {e}")

    def flush(self) -> None:
        """Run every pending call now."""
        with self._lock:
            pending = list(self._pending.items())
            for timer in self._timers.values():
                timer.cancel()
            self._pending.clear()
            self._timers.clear()
        for key, fn in pending:
            self._run(key, fn)

    def cancel_all(self) -> None:
        """Drop pending calls without running them."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._pending.clear()
            self._timers.clear()
