"""Project config synchronisation engine.

Public API for keeping a project's YAML config files, its persisted
snapshot, and the live runtime state convergent.

Architecture
------------
The engine treats the snapshot as the **last agreed state**.  Each
regeneration diffs one side against it and applies the edit list to the
other side, so files and live state are never compared directly.

Modules:

- ``tree``     -- ``ConfigTree``: nested settings with path access and merge.
- ``differ``   -- ``diff_trees`` / ``apply_changes``: ordered edit lists.
- ``store``    -- ``FileStore``: YAML load, deterministic staged writes.
- ``mapper``   -- ``PathMap`` / ``PathMapBuilder``: prefix-to-file ownership.
- ``state``    -- ``SnapshotStore`` / ``ModifiedDateCache``: JSON state files.
- ``runtime``  -- ``RuntimeState`` / ``ComponentRegistry``: live state.
- ``settings`` -- ``SystemSettings``: typed settings lookup.
- ``engine``   -- ``ProjectConfig``: the three regeneration operations.
- ``models``   -- ``ChangeOp``, ``MountRule``, ``Snapshot``,
  ``RegenerationReport`` and other data contracts.
- ``errors``   -- ``ProjectConfigError`` and its subclasses.
- ``reporter`` -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from project_config.sync import (
        AccessGate, FileStore, MountRule, PathMapBuilder, ProjectConfig,
        RuntimeState, SnapshotStore, format_regeneration_report,
    )

    config = ProjectConfig(
        store=FileStore(Path("config")),
        snapshots=SnapshotStore(Path(".project_config")),
        builder=PathMapBuilder([
            MountRule(prefix="", location="project.yaml"),
            MountRule(prefix="sections", location="sections/"),
        ]),
        live=RuntimeState(),
        gate=AccessGate(is_admin=True, elevated_session=True),
    )

    report = config.regenerate_snapshot()
    print(format_regeneration_report(report))
"""

from .differ import apply_changes, diff_trees
from .engine import AccessGate, ProjectConfig
from .errors import (
    ApplyError,
    AuthorizationError,
    ConflictError,
    ParseError,
    PathError,
    PathMapConflictError,
    ProjectConfigError,
    UnmappedPathError,
)
from .mapper import PathMap, PathMapBuilder
from .models import (
    ChangeAction,
    ChangeOp,
    FileManifest,
    MountRule,
    PathMapEntry,
    RegenerationReport,
    Snapshot,
)
from .reporter import (
    format_dry_run_preview,
    format_regeneration_report,
    report_to_json,
)
from .runtime import ComponentRegistry, RuntimeState
from .settings import SystemSettings
from .state import ModifiedDateCache, SnapshotStore
from .store import FileStore
from .tree import NOT_FOUND, ConfigTree, MergePolicy

__all__ = [
    "AccessGate",
    "ApplyError",
    "AuthorizationError",
    "ChangeAction",
    "ChangeOp",
    "ComponentRegistry",
    "ConfigTree",
    "ConflictError",
    "FileManifest",
    "FileStore",
    "MergePolicy",
    "ModifiedDateCache",
    "MountRule",
    "NOT_FOUND",
    "ParseError",
    "PathError",
    "PathMap",
    "PathMapBuilder",
    "PathMapConflictError",
    "PathMapEntry",
    "ProjectConfig",
    "ProjectConfigError",
    "RegenerationReport",
    "RuntimeState",
    "Snapshot",
    "SnapshotStore",
    "SystemSettings",
    "UnmappedPathError",
    "apply_changes",
    "diff_trees",
    "format_dry_run_preview",
    "format_regeneration_report",
    "report_to_json",
]
