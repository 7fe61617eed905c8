"""MCP tool handlers for project config operations.

This package contains the MCP tool implementations that wrap the
regeneration coordinator with async handlers, write serialisation, and
structured error responses.
"""

from .errors import build_error_response, translate_engine_error
from .project import PROJECT_SPECS, PROJECT_TOOLS
from .registry import (
    CONFIG_ADMIN,
    CONFIG_VIEW,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = list(PROJECT_SPECS)

__all__ = [
    "build_error_response",
    "translate_engine_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "CONFIG_ADMIN",
    "CONFIG_VIEW",
    # ToolSpec lists
    "ALL_SPECS",
    "PROJECT_SPECS",
    "PROJECT_TOOLS",
]
