"""Command-line interface for project config regeneration.

Subcommands map one-to-one onto the coordinator operations::

    project-config regenerate-snapshot
    project-config regenerate-config [--dry-run] [--json]
    project-config regenerate-mappings
    project-config status [--json]
    project-config get PATH
    project-config init

Live state for the CLI is a ``RuntimeState`` persisted at
``<state_dir>/runtime.json``; it is written back only after a successful
snapshot regeneration.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_loader import ensure_settings, load_hierarchical_settings
from .config_schema import build_config
from .core.instance import ConfigInstance, open_instance
from .logger import setup_logging
from .sync.errors import ApplyError, ProjectConfigError
from .sync.reporter import (
    format_apply_error,
    format_dry_run_preview,
    format_regeneration_report,
    report_to_json,
)
from .sync.tree import NOT_FOUND
from .validators import validate_path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_regenerate_snapshot(instance: ConfigInstance, args) -> int:
    report = instance.project.regenerate_snapshot()
    instance.persist_live()
    _emit_report(report, args.json)
    return 0


def _cmd_regenerate_config(instance: ConfigInstance, args) -> int:
    report = instance.project.regenerate_config(dry_run=args.dry_run)
    if args.json:
        print(json.dumps(report_to_json(report), indent=2, default=str))
    elif args.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_regeneration_report(report))
    return 0


def _cmd_regenerate_mappings(instance: ConfigInstance, args) -> int:
    report = instance.project.rebuild_mappings()
    if report.mapping_changed:
        instance.project.update_date_modified_cache()
    _emit_report(report, args.json)
    return 0


def _cmd_status(instance: ConfigInstance, args) -> int:
    status = instance.project.status()
    if args.json:
        print(json.dumps(status, indent=2, default=str))
        return 0

    print(f"Snapshot version: {status['snapshot_version']}")
    print(f"Updated at:       {status['updated_at'] or 'never'}")
    print(f"Sections:         {', '.join(status['sections']) or '(none)'}")
    print("Mappings:")
    for entry in status["mappings"]:
        prefix = entry["prefix"] or "<root>"
        print(f"  {prefix} -> {entry['location']} ({entry['origin']})")
    if status["stale_files"]:
        print("Changed since last regeneration:")
        for file in status["stale_files"]:
            print(f"  {file}")
    return 0


def _cmd_get(instance: ConfigInstance, args) -> int:
    ok, reason = validate_path(args.path)
    if not ok:
        print(f"Error: {reason}", file=sys.stderr)
        return 2
    value = instance.project.get(args.path)
    if value is NOT_FOUND:
        print(f"Error: no value at '{args.path}'", file=sys.stderr)
        return 1
    if isinstance(value, (dict, list)):
        print(json.dumps(value, indent=2, sort_keys=True))
    else:
        print(json.dumps(value))
    return 0


def _emit_report(report, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report_to_json(report), indent=2, default=str))
    else:
        print(format_regeneration_report(report))


_COMMANDS = {
    "regenerate-snapshot": _cmd_regenerate_snapshot,
    "regenerate-config": _cmd_regenerate_config,
    "regenerate-mappings": _cmd_regenerate_mappings,
    "status": _cmd_status,
    "get": _cmd_get,
}


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def _cmd_init(args) -> int:
    """Create a starter settings file and the config directory."""
    target = Path(args.settings) if args.settings else None
    settings_path = ensure_settings(target)
    print(f"Settings: {settings_path}")

    unified = build_config(load_hierarchical_settings())
    config_dir = Path(args.config_dir or unified.project.config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)
    print(f"Config directory: {config_dir}")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-config",
        description="Keep YAML config files, the config snapshot, and live state in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Files changed (e.g. after git pull): apply them
  project-config regenerate-snapshot

  # Live state changed: preview, then write the files
  project-config regenerate-config --dry-run
  project-config regenerate-config

  # Files were moved or split: rebuild the path map
  project-config regenerate-mappings
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
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"project-config version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser(
        "regenerate-snapshot", help="Apply the config files to live state"
    )
    p.add_argument("--json", action="store_true", help="Print JSON output")

    p = sub.add_parser(
        "regenerate-config", help="Write live state back to the config files"
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Show file diffs without writing anything",
    )
    p.add_argument("--json", action="store_true", help="Print JSON output")

    p = sub.add_parser(
        "regenerate-mappings", help="Rebuild the path-to-file mapping"
    )
    p.add_argument("--json", action="store_true", help="Print JSON output")

    p = sub.add_parser("status", help="Show snapshot and staleness status")
    p.add_argument("--json", action="store_true", help="Print JSON output")

    p = sub.add_parser("get", help="Print one value from the snapshot")
    p.add_argument("path", help="Dot-separated config path, e.g. system.name")

    p = sub.add_parser(
        "init", help="Create a starter settings file and config directory"
    )
    p.add_argument("--settings", help="Settings file to create")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)

    load_dotenv()
    setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)

    if args.command == "init":
        return _cmd_init(args)

    try:
        unified = build_config(load_hierarchical_settings())
        config = load_config(
            config_dir=args.config_dir,
            state_dir=args.state_dir,
            debug=args.debug,
            settings=unified,
        )
        instance = open_instance(config)
    except (ValueError, OSError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except ProjectConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        return _COMMANDS[args.command](instance, args)
    except ApplyError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(format_apply_error(e), file=sys.stderr)
        return 1
    except ProjectConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
