"""
Session Module

Per-session sync state: at most one user action in flight, and remote
snapshots deferred (never dropped) while an action runs or settles.

States:
    IDLE -> ACTION_IN_FLIGHT -> IDLE (+ settle window)
    IDLE -> APPLYING_REMOTE_SNAPSHOT -> IDLE
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Deque, Optional

from infrastructure.logger import get_logger

logger = get_logger("SyncSession")


class SessionState(Enum):
    IDLE = auto()
    ACTION_IN_FLIGHT = auto()
    APPLYING_REMOTE_SNAPSHOT = auto()


@dataclass
class PendingSnapshot:
    """A remote snapshot waiting to be applied."""
    doc_id: str
    data: Any
    handler: Callable[[Any], None]


class SyncSession:
    """
    Mutual exclusion between local actions and incoming snapshots.

    Args:
        settle_ms: How long after an action snapshots keep being deferred,
            so the echo of our own write does not overwrite newer local state
        clock: Monotonic seconds, injectable for tests
        busy: Extra condition that also defers snapshots (e.g. pending debounced saves)
    """

    def __init__(
        self,
        settle_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
        busy: Optional[Callable[[], bool]] = None
    ):
        self.settle_ms = settle_ms
        self._clock = clock
        self._busy = busy
        self._state = SessionState.IDLE
        self._action_label: Optional[str] = None
        self._settle_until = 0.0
        self._queue: Deque[PendingSnapshot] = deque()
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    def set_busy_check(self, busy: Optional[Callable[[], bool]]) -> None:
        self._busy = busy

    def begin_action(self, label: str) -> bool:
        """
        Enter ACTION_IN_FLIGHT.

        Returns:
            False when another action (or a snapshot apply) is running;
            the caller should drop the action
        """
        with self._lock:
            if self._state != SessionState.IDLE:
                logger.info(f"⏸️ '{label}' diabaikan, '{self._action_label}' masih diproses")
                return False
            self._state = SessionState.ACTION_IN_FLIGHT
            self._action_label = label
            return True

    def end_action(self) -> None:
        with self._lock:
            self._state = SessionState.IDLE
            self._action_label = None
            self._settle_until = self._clock() + self.settle_ms / 1000.0

    def is_suppressed(self) -> bool:
        """True while snapshots must wait."""
        with self._lock:
            if self._state != SessionState.IDLE:
                return True
            if self._clock() < self._settle_until:
                return True
        return bool(self._busy and self._busy())

    def offer_snapshot(self, doc_id: str, data: Any, handler: Callable[[Any], None]) -> bool:
        """
        Apply a snapshot now, or queue it if the session is busy.

        Queued snapshots are applied first so arrival order is kept.

        Returns:
            True if the snapshot was applied immediately
        """
        with self._lock:
            self._queue.append(PendingSnapshot(doc_id, data, handler))
            if self.is_suppressed():
                logger.debug(f"Snapshot {doc_id} ditunda ({len(self._queue)} antre)")
                return False
        self.drain()
        return True

    def drain(self) -> int:
        """
        Apply queued snapshots in arrival order if the session is free.

        Returns:
            Number of snapshots applied
        """
        applied = 0
        while True:
            with self._lock:
                if not self._queue or self.is_suppressed():
                    return applied
                pending = self._queue.popleft()
                self._state = SessionState.APPLYING_REMOTE_SNAPSHOT
            try:
                pending.handler(pending.data)
                applied += 1
            except Exception as e:
                logger.error(f"Gagal menerapkan snapshot {pending.doc_id}: {e}")
            finally:
                with self._lock:
                    self._state = SessionState.IDLE
