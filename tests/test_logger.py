"""Tests for setup_logging() and JsonFormatter.

``logging.basicConfig`` is patched throughout: pytest's log capture
installs handlers of its own, so a real call would be a no-op.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from project_config.logger import DEFAULT_MCP_LOG_FILE, JsonFormatter, setup_logging

BASIC_CONFIG = "project_config.logger.logging.basicConfig"


def _record(msg="Regenerated %d file(s)", args=(3,), exc_info=None):
    return logging.LogRecord(
        name="project_config.sync.engine",
        level=logging.INFO,
        pathname="engine.py",
        lineno=10,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestSetupLogging:
    @patch(BASIC_CONFIG)
    def test_cli_mode_uses_stderr(self, mock_basic):
        setup_logging(mode="cli")
        handlers = mock_basic.call_args.kwargs["handlers"]
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    @patch(BASIC_CONFIG)
    def test_cli_log_file_adds_file_handler(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))
        handlers = mock_basic.call_args.kwargs["handlers"]
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 2
        assert len(file_handlers) == 1
        for handler in file_handlers:
            handler.close()

    @patch(BASIC_CONFIG)
    def test_mcp_mode_never_uses_stdout(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "mcp.log")
        setup_logging(mode="mcp", log_file=log_file)
        kwargs = mock_basic.call_args.kwargs
        assert kwargs["filename"] == log_file
        assert "handlers" not in kwargs

    @patch(BASIC_CONFIG)
    def test_mcp_default_file(self, mock_basic):
        setup_logging(mode="mcp")
        assert mock_basic.call_args.kwargs["filename"] == DEFAULT_MCP_LOG_FILE

    @patch(BASIC_CONFIG)
    def test_mcp_file_from_env(self, mock_basic, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "env.log"))
        setup_logging(mode="mcp")
        assert mock_basic.call_args.kwargs["filename"] == str(tmp_path / "env.log")

    @pytest.mark.parametrize(
        "mode,expected", [("cli", logging.INFO), ("mcp", logging.WARNING)]
    )
    @patch(BASIC_CONFIG)
    def test_default_levels(self, mock_basic, mode, expected):
        setup_logging(mode=mode)
        assert mock_basic.call_args.kwargs["level"] == expected

    @patch(BASIC_CONFIG)
    def test_level_from_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert mock_basic.call_args.kwargs["level"] == logging.ERROR

    @patch(BASIC_CONFIG)
    def test_debug_flag_beats_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG

    @patch(BASIC_CONFIG)
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        handlers = mock_basic.call_args.kwargs["handlers"]
        assert isinstance(handlers[0].formatter, JsonFormatter)

    @patch(BASIC_CONFIG)
    def test_third_party_loggers_quietened(self, _mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("mcp").level == logging.WARNING
        assert logging.getLogger("charset_normalizer").level == logging.WARNING


class TestJsonFormatter:
    def test_fields(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "project_config.sync.engine"
        assert data["msg"] == "Regenerated 3 file(s)"
        assert "ts" in data
        assert "exc" not in data

    def test_exception_included_on_one_line(self):
        try:
            raise OSError("disk full")
        except OSError:
            exc_info = sys.exc_info()
        output = JsonFormatter().format(_record("Write failed", (), exc_info))
        assert "\n" not in output
        assert "OSError: disk full" in json.loads(output)["exc"]
