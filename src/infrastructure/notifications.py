"""
Notifications Module

Notification collaborator: in-app toasts, OS-level notifications and tones.
The dashboard fires these as side effects and never depends on their result.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from infrastructure.logger import get_logger

logger = get_logger("Notifier")


SUCCESS_TONES = (523.25, 659.25, 783.99)  # C5 - E5 - G5
WARNING_TONES = (800.0, 400.0)
TONE_DURATION_MS = 150

SEVERITIES = ("success", "info", "warning", "error")


@dataclass
class Notification:
    """A delivered notification, kept for display and tests."""
    message: str
    severity: str = "info"
    title: Optional[str] = None


class Notifier(ABC):
    """Abstract notification channel."""

    @abstractmethod
    def notify(self, message: str, severity: str = "info") -> None:
        """In-app toast."""
        pass

    @abstractmethod
    def notify_browser(self, title: str, body: str) -> None:
        """OS-level notification; needs permission granted beforehand."""
        pass

    @abstractmethod
    def play_tone(self, frequency_hz: float, duration_ms: int) -> None:
        pass

    def play_success(self) -> None:
        for frequency in SUCCESS_TONES:
            self.play_tone(frequency, TONE_DURATION_MS)

    def play_warning(self) -> None:
        for frequency in WARNING_TONES:
            self.play_tone(frequency, TONE_DURATION_MS)


class LoggingNotifier(Notifier):
    """
    Notifier that writes to the log and keeps the last notifications in memory.

    Browser notifications are only delivered when `browser_permission` is True.
    """

    def __init__(self, browser_permission: bool = False, max_history: int = 50):
        self.browser_permission = browser_permission
        self.max_history = max_history
        self.history: List[Notification] = []
        self.tones: List[float] = []

    def _remember(self, notification: Notification) -> None:
        self.history.append(notification)
        if len(self.history) > self.max_history:
            self.history = self.history[-self.max_history:]

    def notify(self, message: str, severity: str = "info") -> None:
        if severity not in SEVERITIES:
            severity = "info"
        self._remember(Notification(message=message, severity=severity))
        if severity == "error":
            logger.error(message)
        elif severity == "warning":
            logger.warning(message)
        else:
            logger.info(message)

    def notify_browser(self, title: str, body: str) -> None:
        if not self.browser_permission:
            logger.debug(f"Notifikasi browser dilewati (tanpa izin): {title}")
            return
        self._remember(Notification(message=body, severity="info", title=title))
        logger.info(f"[{title}] {body}")

    def play_tone(self, frequency_hz: float, duration_ms: int) -> None:
        self.tones.append(frequency_hz)
        logger.debug(f"Nada {frequency_hz}Hz {duration_ms}ms")

    def messages(self, severity: Optional[str] = None) -> List[str]:
        return [n.message for n in self.history if severity is None or n.severity == severity]
