"""
Unit tests for the logging notifier.
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from infrastructure.notifications import LoggingNotifier, SUCCESS_TONES, WARNING_TONES


class TestLoggingNotifier:
    """Tests for LoggingNotifier."""

    def test_history_by_severity(self):
        notifier = LoggingNotifier()
        notifier.notify("Check-in berhasil", "success")
        notifier.notify("Gagal", "error")
        notifier.notify("Aneh", "kuning")

        assert notifier.messages("error") == ["Gagal"]
        assert notifier.messages("info") == ["Aneh"]
        assert len(notifier.messages()) == 3

    def test_history_capped(self):
        notifier = LoggingNotifier(max_history=2)
        for i in range(5):
            notifier.notify(str(i))

        assert notifier.messages() == ["3", "4"]

    def test_browser_needs_permission(self):
        notifier = LoggingNotifier()
        notifier.notify_browser("Break", "Waktu break habis")
        assert notifier.history == []

        notifier.browser_permission = True
        notifier.notify_browser("Break", "Waktu break habis")
        assert notifier.history[0].title == "Break"

    def test_tones(self):
        notifier = LoggingNotifier()
        notifier.play_success()
        notifier.play_warning()

        assert notifier.tones == list(SUCCESS_TONES) + list(WARNING_TONES)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
