"""Core project config wiring shared between the CLI and the MCP server."""

from .async_utils import run_serialized, run_sync
from .instance import ConfigInstance, open_instance

__all__ = ["ConfigInstance", "open_instance", "run_serialized", "run_sync"]
