"""
Unit tests for process bootstrap.
"""

import logging

import json_log_formatter
import pytest

from backend.slotbook_server.config import Settings
from backend.slotbook_server.main import main, setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(log_format="json", log_level="DEBUG"))

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert root.level == logging.DEBUG

    def test_text_format(self):
        setup_logging(Settings(log_format="text", log_level="warning"))

        root = logging.getLogger()
        assert not isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)
        assert root.level == logging.WARNING


class TestMain:
    """Tests for the server entry point."""

    def test_invalid_config_exits(self, monkeypatch, capsys):
        monkeypatch.setenv("SLOTBOOK_MAX_WRITE_RETRIES", "0")

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Configuration error" in capsys.readouterr().err
