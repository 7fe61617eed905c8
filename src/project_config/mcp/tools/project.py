"""MCP tool handlers for project config regeneration.

Defines five tools:

- ``config_regenerate_snapshot`` -- rebuild snapshot and live state from files.
- ``config_regenerate_config`` -- rewrite files from live state (with dry run).
- ``config_regenerate_mappings`` -- rebuild the path map.
- ``config_status`` -- snapshot version, staleness, and mappings.
- ``config_get`` -- read one value from the snapshot.

Write tools hold the instance lock for the whole operation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_serialized, run_sync
from ...core.instance import ConfigInstance
from ...sync.models import RegenerationReport
from ...sync.reporter import (
    format_dry_run_preview,
    format_regeneration_report,
    report_to_json,
)
from ...sync.tree import NOT_FOUND
from ...validators import validate_path
from .errors import build_error_response
from .registry import CONFIG_ADMIN, CONFIG_VIEW, ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_NO_ARGS = {"type": "object", "properties": {}, "required": []}


def _hints(read_only: bool, destructive: bool = False) -> types.ToolAnnotations:
    # every tool is idempotent and touches only the local project
    return types.ToolAnnotations(
        readOnlyHint=read_only,
        destructiveHint=destructive,
        idempotentHint=True,
        openWorldHint=False,
    )


PROJECT_TOOLS: list[types.Tool] = [
    types.Tool(
        name="config_regenerate_snapshot",
        description=(
            "Rebuild the config snapshot and live state from the YAML "
            "config files. Files are authoritative."
        ),
        annotations=_hints(read_only=False),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="config_regenerate_config",
        description=(
            "Rewrite the YAML config files from live state. Live state is "
            "authoritative. Use dry_run to preview file diffs."
        ),
        annotations=_hints(read_only=False, destructive=True),
        inputSchema={
            "type": "object",
            "properties": {
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Preview changes without writing files",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="config_regenerate_mappings",
        description=(
            "Rebuild the mapping from config paths to the files that own "
            "them. Refreshes section modified dates when the mapping changed."
        ),
        annotations=_hints(read_only=False),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="config_status",
        description=(
            "Show snapshot version, last update, files changed since the "
            "last regeneration, and the path mappings."
        ),
        annotations=_hints(read_only=True),
        inputSchema=_NO_ARGS,
    ),
    types.Tool(
        name="config_get",
        description=(
            "Read one value from the config snapshot by dot-separated path "
            "(e.g. system.name). An empty path returns the whole tree."
        ),
        annotations=_hints(read_only=True),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Dot-separated config path",
                },
            },
            "required": ["path"],
        },
    ),
]


def _result(text: str, structured: dict[str, Any]) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _snapshot_and_persist(instance: ConfigInstance) -> RegenerationReport:
    report = instance.project.regenerate_snapshot()
    instance.persist_live()
    return report


async def _handle_regenerate_snapshot(
    instance: ConfigInstance, args: dict[str, Any]
) -> types.CallToolResult:
    report = await run_serialized(instance.lock, _snapshot_and_persist, instance)
    return _result(format_regeneration_report(report), report_to_json(report))


async def _handle_regenerate_config(
    instance: ConfigInstance, args: dict[str, Any]
) -> types.CallToolResult:
    dry_run = args.get("dry_run", False)
    if not isinstance(dry_run, bool):
        return build_error_response(
            "validation_error",
            f"dry_run must be a boolean, got {type(dry_run).__name__}",
            "Pass dry_run as true or false.",
        )
    report = await run_serialized(
        instance.lock, instance.project.regenerate_config, dry_run=dry_run
    )
    text = (
        format_dry_run_preview(report)
        if dry_run
        else format_regeneration_report(report)
    )
    return _result(text, report_to_json(report))


def _mappings_and_refresh(instance: ConfigInstance) -> RegenerationReport:
    report = instance.project.rebuild_mappings()
    if report.mapping_changed:
        instance.project.update_date_modified_cache()
    return report


async def _handle_regenerate_mappings(
    instance: ConfigInstance, args: dict[str, Any]
) -> types.CallToolResult:
    report = await run_serialized(instance.lock, _mappings_and_refresh, instance)
    return _result(format_regeneration_report(report), report_to_json(report))


async def _handle_status(
    instance: ConfigInstance, args: dict[str, Any]
) -> types.CallToolResult:
    status = await run_sync(instance.project.status)
    lines = [
        "Project config status",
        f"  Snapshot version: {status['snapshot_version']}",
        f"  Updated at:       {status['updated_at'] or 'never'}",
        f"  Sections:         {', '.join(status['sections']) or '(none)'}",
        f"  Mappings:         {len(status['mappings'])}",
    ]
    if status["stale_files"]:
        lines.append("  Changed since last regeneration:")
        lines.extend(f"    {f}" for f in status["stale_files"])
    return _result("\n".join(lines), status)


async def _handle_get(
    instance: ConfigInstance, args: dict[str, Any]
) -> types.CallToolResult:
    path = args.get("path")
    if path is None:
        return build_error_response(
            "validation_error",
            "path is required",
            "Provide the 'path' parameter, e.g. system.name.",
        )
    ok, reason = validate_path(path)
    if not ok:
        raise ValueError(reason)

    value = await run_sync(instance.project.get, path)
    if value is NOT_FOUND:
        return build_error_response(
            "not_found",
            f"No value at '{path}'",
            "Use config_status to list top-level sections.",
        )
    return _result(
        json.dumps(value, indent=2, sort_keys=True, default=str),
        {"path": path, "value": value},
    )


PROJECT_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=PROJECT_TOOLS[0],
        permissions=frozenset({CONFIG_ADMIN}),
        handler=_handle_regenerate_snapshot,
    ),
    ToolSpec(
        tool=PROJECT_TOOLS[1],
        permissions=frozenset({CONFIG_ADMIN}),
        handler=_handle_regenerate_config,
    ),
    ToolSpec(
        tool=PROJECT_TOOLS[2],
        permissions=frozenset({CONFIG_ADMIN}),
        handler=_handle_regenerate_mappings,
    ),
    ToolSpec(
        tool=PROJECT_TOOLS[3],
        permissions=frozenset({CONFIG_VIEW}),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=PROJECT_TOOLS[4],
        permissions=frozenset({CONFIG_VIEW}),
        handler=_handle_get,
    ),
]
