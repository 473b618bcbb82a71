"""Tests for logger.py: setup_logging() and JsonFormatter.

Covers:
- stderr handler and optional file handler
- Debug level override
- LOG_LEVEL and configured level handling
- JSON formatter output

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from govdir.logger import JsonFormatter, setup_logging


# ---------------------------------------------------------------------------
# setup_logging tests
# ---------------------------------------------------------------------------


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("govdir.logger.logging.basicConfig")
    def test_logs_to_stderr(self, mock_basic):
        """A StreamHandler(stderr) is always passed to basicConfig."""
        setup_logging()

        mock_basic.assert_called_once()
        kwargs = mock_basic.call_args[1]
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr
        assert kwargs["force"] is True

    @patch("govdir.logger.logging.basicConfig")
    def test_default_level_is_warning(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging()

        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("govdir.logger.logging.basicConfig")
    def test_configured_level(self, mock_basic, monkeypatch):
        """The level argument applies when LOG_LEVEL is unset."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(level="info")

        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("govdir.logger.logging.basicConfig")
    def test_env_log_level_beats_configured(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(level="INFO")

        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("govdir.logger.logging.basicConfig")
    def test_debug_beats_env(self, mock_basic, monkeypatch):
        """debug=True overrides LOG_LEVEL env var."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(debug=True)

        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("govdir.logger.logging.basicConfig")
    def test_unknown_level_falls_back(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")
        setup_logging()

        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("govdir.logger.logging.basicConfig")
    def test_log_file_adds_file_handler(self, mock_basic, tmp_path):
        """log_file creates both stderr and file handlers."""
        log_file = str(tmp_path / "govdir.log")
        setup_logging(log_file=log_file)

        handlers = mock_basic.call_args[1]["handlers"]
        file_handlers = [
            h for h in handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(handlers) == 2
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == log_file
        assert "%(name)s" in file_handlers[0].formatter._fmt
        # Clean up file handler
        for h in file_handlers:
            h.close()

    @patch("govdir.logger.logging.basicConfig")
    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(log_format="json")

        handlers = mock_basic.call_args[1]["handlers"]
        assert all(isinstance(h.formatter, JsonFormatter) for h in handlers)


# ---------------------------------------------------------------------------
# JsonFormatter tests
# ---------------------------------------------------------------------------


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_output(self):
        """Formatted output is valid JSON with required keys."""
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        record = logging.LogRecord(
            name="govdir.sync.exporter",
            level=logging.INFO,
            pathname="exporter.py",
            lineno=1,
            msg="Wrote %s",
            args=("person/narenddm.toml",),
            exc_info=None,
        )

        data = json.loads(formatter.format(record))

        assert "ts" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "govdir.sync.exporter"
        assert data["msg"] == "Wrote person/narenddm.toml"

    def test_includes_exception(self):
        """Exception info is included in 'exc' key."""
        formatter = JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")

        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="An error occurred",
            args=(),
            exc_info=exc_info,
        )

        output = formatter.format(record)
        data = json.loads(output)

        assert "ValueError" in data["exc"]
        assert "test error" in data["exc"]
        assert "\n" not in output
