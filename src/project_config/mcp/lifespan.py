"""Startup and shutdown of one MCP server session.

Anything that would leave the server unusable (bad settings, a missing
config directory, unparseable YAML, corrupt snapshot state) is reported on
stderr and raised as ``RuntimeError`` before the stdio transport starts.
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import discover_settings_files, load_hierarchical_settings
from ..config_schema import build_config
from ..core.async_utils import run_sync
from ..core.instance import ConfigInstance, open_instance
from ..file_handler import validate_directory
from ..sync.errors import ProjectConfigError

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    # stdout belongs to JSON-RPC
    print(msg, file=sys.stderr, flush=True)


def _resolve_config(overrides: dict[str, Any]) -> Config:
    """Merge command line, environment, ``.env``, and settings files."""
    # .env before settings so ${VAR} references can see its values
    load_dotenv()

    settings_files = discover_settings_files()
    config = load_config(
        config_dir=overrides.get("config_dir"),
        state_dir=overrides.get("state_dir"),
        debug=overrides.get("debug", False),
        settings=build_config(load_hierarchical_settings()),
    )

    sources = [f"settings file: {settings_files[0]}"] if settings_files else []
    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    described = ", ".join(sources)
    logger.info("Configuration loaded from: %s", described)
    _stderr_print(f"  Configuration loaded from: {described}")
    _stderr_print(f"  Config directory: {config.config_dir}")
    return config


async def _open(config: Config) -> ConfigInstance:
    validate_directory(config.config_dir)
    instance = open_instance(config)
    status = await run_sync(instance.project.status)
    _stderr_print(
        f"  Snapshot version {status['snapshot_version']}, "
        f"{len(status['sections'])} section(s)"
    )
    stale = status["stale_files"]
    if stale:
        _stderr_print(f"  {len(stale)} file(s) changed since the last regeneration")
    return instance


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Open the project for the duration of a session.

    Args:
        config_overrides: Values from the command line (``config_dir``,
            ``state_dir``, ``debug``); they win over every other source.

    Yields:
        ``{"instance": ConfigInstance}``

    Raises:
        RuntimeError: If the configuration is invalid or the project
            cannot be opened.
    """
    logger.info("MCP server starting")
    _stderr_print("Project Config MCP Server starting...")

    try:
        config = _resolve_config(config_overrides or {})
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        instance = await _open(config)
    except (ValueError, OSError, ProjectConfigError) as e:
        logger.error("Failed to open project config: %s", e)
        _stderr_print(f"ERROR: Failed to open project config: {e}")
        raise RuntimeError(f"Failed to open project config: {e}") from e

    _stderr_print("Server ready. Waiting for MCP client connection...")
    yield {"instance": instance}

    logger.info("MCP server shutting down")
    _stderr_print("Project Config MCP Server shutting down.")
