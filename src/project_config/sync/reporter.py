"""Regeneration report formatting functions.

Provides human-readable and machine-readable output for regeneration runs:

- ``format_regeneration_report`` -- full post-run summary.
- ``format_dry_run_preview`` -- config dry-run preview with file diffs.
- ``format_apply_error`` -- what was applied before a failed change.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from project_config.sync.errors import ApplyError
    from project_config.sync.models import RegenerationReport

_OPERATION_LABELS = {
    "snapshot": "snapshot regeneration",
    "config": "config regeneration",
    "mappings": "mapping regeneration",
}

# Cap on changes listed per section before the rest are summarised.
MAX_LISTED_CHANGES = 50

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_regeneration_report(report: RegenerationReport) -> str:
    """Format a completed regeneration as human-readable text.

    Sections are only included when they contain at least one entry.

    Args:
        report: The completed report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Report for {_OPERATION_LABELS[report.operation]}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.changes)} change(s): "
        f"{len(report.added)} added, {len(report.updated)} updated, "
        f"{len(report.removed)} removed"
    )
    lines.append(f"Snapshot version: {report.snapshot_version}")
    lines.append(
        f"Mapping changed: {'yes' if report.mapping_changed else 'no'}"
    )
    lines.append("")

    if report.changes:
        lines.append("Changes:")
        for op in report.changes[:MAX_LISTED_CHANGES]:
            lines.append(f"  {op.describe()}")
        hidden = len(report.changes) - MAX_LISTED_CHANGES
        if hidden > 0:
            lines.append(f"  ... ({hidden} more)")
        lines.append("")

    if report.files_written:
        lines.append("Files written:")
        for f in report.files_written:
            lines.append(f"  {f}")
        lines.append("")

    if report.files_removed:
        lines.append("Files removed:")
        for f in report.files_removed:
            lines.append(f"  {f}")
        lines.append("")

    if not report.changes and not report.files_written and not report.files_removed:
        lines.append("Already up to date.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: RegenerationReport) -> str:
    """Format a config dry run as a list of file diffs.

    Args:
        report: A dry-run report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append("")

    if not report.diffs:
        lines.append("No changes needed.")
        return "\n".join(lines)

    for file in sorted(report.diffs):
        label = "REMOVE" if file in report.files_removed else "WRITE"
        lines.append(f"[{label}] {file}")
        lines.append(report.diffs[file].rstrip())
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Apply failures
# ------------------------------------------------------------------


def format_apply_error(error: ApplyError) -> str:
    """Describe a partial apply: the failed change and what preceded it."""
    lines = [f"Failed: {error.failed_op.describe()}", f"Cause: {error.cause}"]
    if error.applied:
        lines.append(f"Applied before the failure ({len(error.applied)}):")
        for op in error.applied:
            lines.append(f"  {op.describe()}")
    else:
        lines.append("No changes were applied before the failure.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: RegenerationReport) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The regeneration report.

    Returns:
        Dict with operation info, counts, and per-change details.
    """
    changes = []
    for op in report.changes:
        entry: dict = {"action": op.action.value, "path": op.path}
        if op.old_value is not None:
            entry["old_value"] = op.old_value
        if op.new_value is not None:
            entry["new_value"] = op.new_value
        changes.append(entry)

    return {
        "operation": report.operation,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "snapshot_version": report.snapshot_version,
        "mapping_changed": report.mapping_changed,
        "counts": {
            "total": len(report.changes),
            "added": len(report.added),
            "updated": len(report.updated),
            "removed": len(report.removed),
            "files_written": len(report.files_written),
            "files_removed": len(report.files_removed),
        },
        "changes": changes,
        "files_written": list(report.files_written),
        "files_removed": list(report.files_removed),
        "diffs": dict(report.diffs),
    }
