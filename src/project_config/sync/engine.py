"""Regeneration coordinator for project config.

``ProjectConfig`` ties together the file store, snapshot store, path map
builder, and live state into the three public operations:

* ``regenerate_snapshot()`` -- files are authoritative.  Parse every file,
  diff the merged tree against the snapshot, apply the edits to live
  state, then persist the new snapshot and path map.
* ``regenerate_config()`` -- live state is authoritative.  Diff the live
  tree against the snapshot, patch the snapshot, and rewrite the files
  that own the changed paths.
* ``regenerate_config_mappings()`` -- rebuild the path map from the
  current file layout and report whether any binding moved.

Every operation checks the access gate before doing any work.  When
applying to live state fails, the snapshot, path map, and files are left
exactly as they were; the ops applied before the failure stay applied in
live state and are listed on the raised ``ApplyError``.

Instances hold no state between calls beyond their collaborators.  They
are not thread-safe: callers serialise operations on one instance.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

from project_config.sync.differ import apply_changes, diff_trees
from project_config.sync.errors import AuthorizationError
from project_config.sync.mapper import PathMap, PathMapBuilder
from project_config.sync.models import (
    ChangeAction,
    ChangeOp,
    FileManifest,
    RegenerationReport,
    Snapshot,
)
from project_config.sync.state import ModifiedDateCache, SnapshotStore
from project_config.sync.store import FileStore
from project_config.sync.tree import ConfigTree, is_within, top_level_key

logger = logging.getLogger(__name__)


class LiveState(Protocol):
    """The running application's state, as seen by the coordinator."""

    def current_tree(self) -> ConfigTree: ...

    def get(self, path: str, default: Any = ...) -> Any: ...

    def set(self, path: str, value: Any) -> None: ...

    def remove(self, path: str) -> bool: ...


class AccessGate:
    """Allow operations only for an admin with an elevated session.

    Each argument is either a bool or a zero-argument callable evaluated
    on every check, so a gate can follow a session that changes over time.
    """

    def __init__(
        self,
        is_admin: bool | Callable[[], bool],
        elevated_session: bool | Callable[[], bool],
    ) -> None:
        self._is_admin = is_admin
        self._elevated_session = elevated_session

    @staticmethod
    def _check(flag: bool | Callable[[], bool]) -> bool:
        return bool(flag() if callable(flag) else flag)

    def __call__(self) -> bool:
        return self._check(self._is_admin) and self._check(
            self._elevated_session
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectConfig:
    """Keep config files, the snapshot, and live state convergent.

    Args:
        store: Reads and writes the config files.
        snapshots: Persists the snapshot and path map.
        builder: Builds path maps from the declared mount rules.
        live: Live state that snapshot regeneration applies to.
        gate: Zero-argument callable; operations refuse to run unless it
            returns ``True``.
        on_change: Optional callback run after each change applied to
            live state.
    """

    def __init__(
        self,
        store: FileStore,
        snapshots: SnapshotStore,
        builder: PathMapBuilder,
        live: LiveState,
        gate: Callable[[], bool],
        on_change: Callable[[ChangeOp], None] | None = None,
    ) -> None:
        self.store = store
        self.snapshots = snapshots
        self.builder = builder
        self.live = live
        self.gate = gate
        self.on_change = on_change

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def regenerate_snapshot(self) -> RegenerationReport:
        """Rebuild the snapshot and live state from the config files.

        Returns:
            Report listing the changes applied to live state.

        Raises:
            AuthorizationError: If the access gate denies the call.
            ParseError: If any config file is malformed.
            PathMapConflictError: If two files or rules claim one path.
            ApplyError: If a change fails against live state.
        """
        started_at = _now()
        self._authorize("regenerate the snapshot")

        manifest = self.store.load_all()
        new_tree = self.builder.assemble(manifest)
        snapshot = self.snapshots.load()
        previous_map = self.snapshots.load_path_map()
        path_map = self.builder.rebuild(
            manifest, previous_map, new_tree, prune=True
        )

        ops = diff_trees(snapshot.tree, new_tree)
        logger.info("Snapshot regeneration: %d change(s)", len(ops))
        apply_changes(ops, self.live, on_change=self.on_change)

        saved = self._save_snapshot(snapshot, new_tree, ops, manifest)
        self.snapshots.save_path_map(path_map)
        return RegenerationReport(
            operation="snapshot",
            changes=ops,
            snapshot_version=saved.version,
            mapping_changed=path_map != previous_map,
            started_at=started_at,
            completed_at=_now(),
        )

    def regenerate_config(self, dry_run: bool = False) -> RegenerationReport:
        """Rewrite the snapshot and config files from live state.

        Live state is read but never modified.

        Args:
            dry_run: Compute changes and file diffs without persisting.

        Returns:
            Report listing the changes, files written and removed, and
            per-file diffs.

        Raises:
            AuthorizationError: If the access gate denies the call.
            ParseError: If any existing config file is malformed.
            UnmappedPathError: If a changed path has no owning file.
            ApplyError: If a change cannot be applied to the snapshot tree.
        """
        started_at = _now()
        self._authorize("regenerate the config files")

        snapshot = self.snapshots.load()
        new_tree = ConfigTree(snapshot.tree)
        ops = diff_trees(new_tree, self.live.current_tree())
        apply_changes(ops, new_tree)
        logger.info(
            "Config regeneration%s: %d change(s)",
            " (dry run)" if dry_run else "",
            len(ops),
        )

        manifest = self.store.load_all()
        previous_map = self.snapshots.load_path_map()
        write_map = self.builder.assign_unmapped(
            self.builder.rebuild(manifest, previous_map, new_tree), new_tree
        )
        result = self.store.write_all(new_tree, write_map, dry_run=dry_run)

        if dry_run:
            path_map = self.builder.prune(write_map, new_tree)
            version = snapshot.version
        else:
            written = self.store.load_all()
            path_map = self.builder.rebuild(
                written, previous_map, new_tree, prune=True
            )
            version = self._save_snapshot(snapshot, new_tree, ops, written).version
            self.snapshots.save_path_map(path_map)

        return RegenerationReport(
            operation="config",
            dry_run=dry_run,
            changes=ops,
            snapshot_version=version,
            mapping_changed=path_map != previous_map,
            files_written=result.written,
            files_removed=result.removed,
            diffs=result.diffs,
            started_at=started_at,
            completed_at=_now(),
        )

    def regenerate_config_mappings(self) -> bool:
        """Rebuild the path map from the current files.

        Returns:
            ``True`` if any binding changed; the caller should then run
            ``update_date_modified_cache()``.
        """
        return self.rebuild_mappings().mapping_changed

    def rebuild_mappings(self) -> RegenerationReport:
        """Rebuild and persist the path map, returning a full report.

        Discovered bindings for sections still present in the snapshot are
        kept even when their file is gone.

        Raises:
            AuthorizationError: If the access gate denies the call.
            ParseError: If any config file is malformed.
            PathMapConflictError: If two files or rules claim one path.
        """
        started_at = _now()
        self._authorize("regenerate the config mappings")

        manifest = self.store.load_all()
        self.builder.check_ownership(manifest)
        snapshot = self.snapshots.load()
        previous_map = self.snapshots.load_path_map()
        path_map = self.builder.rebuild(
            manifest, previous_map, ConfigTree(snapshot.tree), prune=False
        )
        changed = path_map != previous_map
        if changed:
            self.snapshots.save_path_map(path_map)
            logger.info("Path map changed: %d entries", len(path_map))
        return RegenerationReport(
            operation="mappings",
            snapshot_version=snapshot.version,
            mapping_changed=changed,
            started_at=started_at,
            completed_at=_now(),
        )

    def update_date_modified_cache(self) -> dict[str, float]:
        """Recompute and persist the modified-date cache.

        Returns:
            The new section -> mtime mapping.
        """
        self._authorize("update the modified-date cache")
        manifest = self.store.load_all()
        cache = ModifiedDateCache.from_manifest(
            manifest, self.builder.mount_point
        )
        snapshot = self.snapshots.load()
        self.snapshots.save(
            snapshot.model_copy(update={"modified_dates": cache.to_dict()})
        )
        return cache.to_dict()

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any:
        """Return the snapshot value at *path* (``NOT_FOUND`` if absent)."""
        return ConfigTree(self.snapshots.load().tree).get(path)

    def status(self) -> dict[str, Any]:
        """Summarise the snapshot, path map, and file staleness.

        Uses ``stat_all()`` only, so it never parses a config file.

        Returns:
            Dict with ``snapshot_version``, ``updated_at``, ``sections``,
            ``modified_dates``, ``stale_files``, ``stale_sections`` and
            ``mappings``.
        """
        snapshot = self.snapshots.load()
        path_map = self.snapshots.load_path_map() or PathMap()
        cache = ModifiedDateCache(snapshot.modified_dates)
        mtimes = self.store.stat_all()

        baseline = max(snapshot.modified_dates.values(), default=float("-inf"))
        stale_files = sorted(f for f, m in mtimes.items() if m > baseline)
        stale = set(stale_files)
        stale_sections = {
            top_level_key(prefix)
            for f in stale
            for prefix in path_map.prefixes_for(f)
            if prefix
        }
        # Root-mounted files own whole sections without naming them
        for path, _value in ConfigTree(snapshot.tree).leaves():
            if path_map.owner_of(path) in stale:
                stale_sections.add(top_level_key(path))
        return {
            "snapshot_version": snapshot.version,
            "updated_at": snapshot.updated_at,
            "sections": sorted(snapshot.tree),
            "modified_dates": cache.to_dict(),
            "stale_files": stale_files,
            "stale_sections": sorted(stale_sections),
            "mappings": [e.model_dump(mode="json") for e in path_map.entries()],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _authorize(self, action: str) -> None:
        if not self.gate():
            logger.warning("Denied attempt to %s", action)
            raise AuthorizationError(
                f"Not allowed to {action}: requires an admin with an "
                "elevated session"
            )

    def _save_snapshot(
        self,
        snapshot: Snapshot,
        tree: ConfigTree,
        ops: list[ChangeOp],
        manifest: FileManifest,
    ) -> Snapshot:
        cache = ModifiedDateCache.from_manifest(
            manifest, self.builder.mount_point
        )
        return self.snapshots.save(
            Snapshot(
                tree=tree.to_dict(),
                version=snapshot.version + 1 if ops else snapshot.version,
                path_modified=_stamp_paths(
                    snapshot.path_modified, ops, time.time()
                ),
                modified_dates=cache.to_dict(),
            )
        )


def _stamp_paths(
    path_modified: dict[str, float], ops: list[ChangeOp], stamp: float
) -> dict[str, float]:
    """Record *stamp* for every path *ops* touched."""
    stamped = dict(path_modified)
    for op in ops:
        for path in [p for p in stamped if is_within(p, op.path)]:
            del stamped[path]
        if op.action != ChangeAction.REMOVE:
            stamped[op.path] = stamp
    return dict(sorted(stamped.items()))
