"""
Unit tests for the shared logger factory.
"""

import pytest
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from infrastructure.logger import get_log_path, get_logger


class TestLogger:
    """Tests for get_logger()."""

    def test_default_path_is_project_root(self):
        assert get_log_path().name == "app.log"
        assert get_log_path("/tmp/lain.log") == Path("/tmp/lain.log")

    def test_writes_to_custom_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "logs" / "test.log"
            logger = get_logger("TestLoggerFile", str(log_file))

            logger.debug("pesan debug")
            for handler in logger.handlers:
                handler.flush()

            assert "pesan debug" in log_file.read_text(encoding="utf-8")
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_handlers_not_duplicated(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = str(Path(tmpdir) / "test.log")
            first = get_logger("TestLoggerOnce", log_file)
            second = get_logger("TestLoggerOnce", log_file)

            assert first is second
            assert len(second.handlers) == 2
            for handler in list(second.handlers):
                handler.close()
                second.removeHandler(handler)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
