"""Logging setup for the two entry points.

The MCP server speaks JSON-RPC on stdout, so in ``mcp`` mode records go to
a file only.  The CLI logs to stderr, optionally also to a file.
"""

import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/project-config.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_QUIET_LOGGERS = ("mcp", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg``, and
    ``exc`` when the record carries exception info."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _text_format(with_name: bool) -> str:
    return "[%(asctime)s] [%(levelname)s]" + (" %(name)s" if with_name else "") + " %(message)s"


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    return logging.Formatter(_text_format(with_name), datefmt=_DATEFMT)


def _resolve_level(mode: str, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    default = "WARNING" if mode == "mcp" else "INFO"
    name = os.getenv("LOG_LEVEL", default).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """Configure the root logger for *mode* (``"cli"`` or ``"mcp"``).

    Args:
        mode: ``"mcp"`` logs to a file, ``"cli"`` to stderr.
        debug: Force DEBUG regardless of ``LOG_LEVEL``.
        log_file: Log file; in ``mcp`` mode falls back to ``$LOG_FILE``
            and then ``DEFAULT_MCP_LOG_FILE``.
        debug_format: ``"text"`` or ``"json"``.

    Environment:
        LOG_LEVEL: Level name; WARNING by default in ``mcp`` mode, INFO in
            ``cli`` mode.
        LOG_FILE: Log file for ``mcp`` mode.
    """
    level = _resolve_level(mode, debug)

    if mode == "mcp":
        logging.basicConfig(
            level=level,
            format=_text_format(with_name=True),
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter(debug_format, with_name=False))
        handlers: list[logging.Handler] = [console]
        if log_file:
            to_file = logging.FileHandler(log_file, mode="a")
            to_file.setFormatter(_formatter(debug_format, with_name=True))
            handlers.append(to_file)
        logging.basicConfig(level=level, handlers=handlers)

    if level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
