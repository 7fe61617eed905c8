"""stdio MCP server for project config.

Exposes the regeneration coordinator as MCP tools so an agent can check
whether the config files and the snapshot have drifted apart and, with
``CONFIG_ADMIN``, bring them back in line.  JSON-RPC travels over stdout,
so nothing else may write there: logs go to a file and user-facing
messages to stderr.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.instance import ConfigInstance
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    ToolSpec,
    build_error_response,
    load_permissions_file,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "project-config"

server = Server(SERVER_NAME)

# Set by main() for the lifetime of one stdio session
_instance: ConfigInstance | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# ping
# ---------------------------------------------------------------------------


async def _handle_ping(
    instance: ConfigInstance, args: dict
) -> types.CallToolResult:
    text = f"{SERVER_NAME} {__version__} serving {instance.config.config_dir}"
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)])


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description=(
            "Check the server is up and see which config directory it serves"
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Session globals
# ---------------------------------------------------------------------------


def get_instance() -> ConfigInstance:
    """Return the instance opened by the lifespan.

    Raises:
        RuntimeError: Outside a running session.
    """
    if _instance is None:
        raise RuntimeError("ConfigInstance not initialized: server not running")
    return _instance


def set_instance(instance: ConfigInstance | None) -> None:
    global _instance
    _instance = instance


def get_registry() -> ToolRegistry:
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized: server not running")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# Protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch one tool call; unknown or filtered-out names become errors."""
    instance = get_instance()
    try:
        return await get_registry().call_tool(name, arguments, instance)
    except ValueError as e:
        return build_error_response(
            "unknown_tool", str(e), "Use list_tools to see available tools."
        )


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Registry of ``ping`` plus the project tools, filtered when a
    permissions file is given."""
    specs = [PING_SPEC, *ALL_SPECS]
    allowed = load_permissions_file(permissions_file) if permissions_file else None
    registry = ToolRegistry(specs, allowed)
    logger.info(
        "Registered %d of %d tools (permissions: %s)",
        registry.tool_count(),
        len(specs),
        ", ".join(sorted(allowed)) if allowed else "all",
    )
    return registry


async def main(config_overrides: dict | None = None) -> None:
    """Serve one stdio session.

    Args:
        config_overrides: Any of ``config_dir``, ``state_dir``, ``log_file``,
            ``permissions_file`` and ``debug`` from the command line.
    """
    overrides = config_overrides or {}

    # Before stdio_server() takes over stdout
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    consistent, message = check_version_consistency()
    (logger.info if consistent else logger.warning)(message)

    permissions_file = overrides.get("permissions_file")
    registry = build_registry(permissions_file)
    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(ALL_SPECS) + 1} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # Globals are set here, not in the lifespan, so that running as
    # __main__ updates this module rather than a second imported copy.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_instance(ctx["instance"])
        try:
            async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name=SERVER_NAME,
                        server_version=__version__,
                        capabilities=server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            set_instance(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-config-mcp",
        description="MCP server for inspecting and regenerating project configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Settings from .project_config/settings.yml
  project-config-mcp

  # Serve another config directory
  project-config-mcp --config-dir ./config

  # Status and get only
  project-config-mcp --permissions-file ./view-only.permissions

stdout carries JSON-RPC; messages for humans go to stderr.
        """,
    )
    parser.add_argument(
        "--config-dir",
        help="Directory holding the YAML config files (overrides PROJECT_CONFIG_DIR and settings)",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory for snapshot state (overrides PROJECT_CONFIG_STATE_DIR and settings)",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: $LOG_FILE or {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="File listing granted permissions, one per line (CONFIG_VIEW, "
        "CONFIG_ADMIN). CONFIG_ADMIN implies CONFIG_VIEW. Default: all tools.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--version",
        action="version",
        version=f"project-config-mcp version {__version__}",
    )
    return parser


def run(argv: list[str] | None = None) -> None:
    """Console entry point."""
    args = build_parser().parse_args(argv)
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value not in (None, False)
    }
    try:
        asyncio.run(main(config_overrides=overrides))
    except RuntimeError:
        # The lifespan already explained the failure on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
