"""Error response builders for MCP tool handlers.

This module provides structured error responses with corrective actions
so an agent can tell an operator exactly which file, path, or setting
needs attention.
"""

import mcp.types as types

from ...sync.errors import (
    ApplyError,
    AuthorizationError,
    ConflictError,
    ParseError,
    PathError,
    PathMapConflictError,
    ProjectConfigError,
    UnmappedPathError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (parse_error, mapping_conflict,
            apply_failed, permission_denied, validation_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action that resolves the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("parse_error", "Failed to parse a.yaml:3: ...", "Fix the YAML syntax.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_engine_error(error: ProjectConfigError) -> types.CallToolResult:
    """Translate an engine error into a structured error response.

    Args:
        error: Any ``ProjectConfigError`` raised by a regeneration.

    Returns:
        CallToolResult with isError=True and a corrective action.
    """
    match error:
        case ParseError():
            where = f"{error.file}:{error.line}" if error.line else error.file
            return build_error_response(
                "parse_error",
                str(error),
                f"Fix the YAML in {where}, then run config_regenerate_snapshot again.",
            )
        case PathMapConflictError():
            return build_error_response(
                "mapping_conflict",
                str(error),
                "Keep '{0}' in exactly one of: {1}. Then retry.".format(
                    error.path, ", ".join(error.claimants)
                ),
            )
        case ConflictError():
            return build_error_response(
                "merge_conflict",
                str(error),
                f"Remove one of the definitions of '{error.path}' and retry.",
            )
        case UnmappedPathError():
            return build_error_response(
                "unmapped_path",
                str(error),
                "Add a mount rule covering this path, or a root mount "
                '(prefix "") in settings.yml.',
            )
        case ApplyError():
            applied = len(error.applied)
            return build_error_response(
                "apply_failed",
                str(error),
                f"{applied} change(s) reached live state before the failure; "
                "the snapshot and files were not updated. Fix the value at "
                f"'{error.failed_op.path}' and rerun the same operation.",
            )
        case AuthorizationError():
            return build_error_response(
                "permission_denied",
                str(error),
                "Run as an admin with an elevated session "
                "(access.admin and access.elevated_session in settings.yml).",
            )
        case PathError():
            return build_error_response(
                "invalid_path",
                str(error),
                "Use a dot-separated path of non-empty keys, e.g. system.name.",
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Check the server log and retry."
            )
