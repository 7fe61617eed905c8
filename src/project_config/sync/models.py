"""Pydantic models for the project config engine.

Defines the data contracts shared across the sync modules:

- ``ChangeAction`` / ``ChangeOp``: one edit produced by diffing two trees.
- ``FileEntry`` / ``FileManifest``: parsed view of the config files.
- ``MountRule`` / ``PathMapEntry``: tree-prefix to file ownership.
- ``Snapshot``: last applied tree, version, and timestamp caches.
- ``WriteResult``: outcome of rewriting the config files.
- ``RegenerationReport``: outcome of one public operation.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, field_validator

from project_config.validators import validate_path


class ChangeAction(str, Enum):
    """Kinds of edit between two config trees."""

    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class ChangeOp(BaseModel):
    """A single edit at one tree path.

    Attributes:
        action: Add, update, or remove.
        path: Delimited tree path the edit applies to.
        old_value: Value before the edit (update/remove).
        new_value: Value after the edit (add/update).  For a type change
            this is the whole replacement subtree.
    """

    action: ChangeAction
    path: str
    old_value: Any = None
    new_value: Any = None

    model_config = {"frozen": True}

    @classmethod
    def add(cls, path: str, value: Any) -> ChangeOp:
        return cls(action=ChangeAction.ADD, path=path, new_value=value)

    @classmethod
    def update(cls, path: str, old_value: Any, new_value: Any) -> ChangeOp:
        return cls(
            action=ChangeAction.UPDATE,
            path=path,
            old_value=old_value,
            new_value=new_value,
        )

    @classmethod
    def remove(cls, path: str, old_value: Any = None) -> ChangeOp:
        return cls(action=ChangeAction.REMOVE, path=path, old_value=old_value)

    def describe(self) -> str:
        """One-line human-readable description."""
        if self.action == ChangeAction.ADD:
            return f"+ {self.path} = {self.new_value!r}"
        if self.action == ChangeAction.REMOVE:
            return f"- {self.path}"
        return f"~ {self.path}: {self.old_value!r} -> {self.new_value!r}"


class FileEntry(BaseModel):
    """One parsed config file.

    Attributes:
        path: POSIX path relative to the config directory.
        fragment: Parsed document (always a mapping).
        mtime: File modification time at load.
    """

    path: str
    fragment: dict[str, Any]
    mtime: float

    model_config = {"frozen": True}


class FileManifest(BaseModel):
    """All parsed config files, keyed by relative path."""

    entries: dict[str, FileEntry] = {}

    model_config = {"frozen": True}

    def files(self) -> list[str]:
        """Sorted relative paths of all files."""
        return sorted(self.entries)

    def mtimes(self) -> dict[str, float]:
        return {path: e.mtime for path, e in sorted(self.entries.items())}


class MountKind(str, Enum):
    """Whether a mount location is a single file or a directory."""

    FILE = "file"
    DIRECTORY = "directory"


class MountRule(BaseModel):
    """Externally declared binding of a tree prefix to a file or directory.

    A ``location`` ending in ``/`` is a directory: each ``<key>.yaml``
    inside it holds the subtree at ``prefix.<key>``.  Otherwise the file
    holds the subtree at ``prefix`` (``""`` mounts it at the root).
    """

    prefix: str
    location: str

    model_config = {"frozen": True}

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        ok, reason = validate_path(value)
        if not ok:
            raise ValueError(reason)
        return value

    @field_validator("location")
    @classmethod
    def _check_location(cls, value: str) -> str:
        value = value.replace("\\", "/").strip()
        is_dir = value.endswith("/")
        cleaned = str(PurePosixPath(value.rstrip("/")))
        if cleaned in ("", ".") or cleaned.startswith(("/", "..")):
            raise ValueError(
                f"Mount location '{value}' must be a relative path inside "
                "the config directory"
            )
        return cleaned + "/" if is_dir else cleaned

    @property
    def kind(self) -> MountKind:
        if self.location.endswith("/"):
            return MountKind.DIRECTORY
        return MountKind.FILE


class PathMapEntry(BaseModel):
    """One binding in the path map.

    Attributes:
        prefix: Tree path prefix owned by ``location``.
        location: File (or directory, ending in ``/``) relative to the
            config directory.
        kind: File or directory.
        origin: ``"rule"`` for declared mounts, ``"discovered"`` for
            fallback bindings found while parsing files.
    """

    prefix: str
    location: str
    kind: MountKind = MountKind.FILE
    origin: Literal["rule", "discovered"] = "discovered"

    model_config = {"frozen": True}


class Snapshot(BaseModel):
    """Last config tree known to be fully applied to live state.

    Attributes:
        tree: The applied tree as a plain mapping.
        version: Logical version; bumped only when the tree changes.
        path_modified: Path -> POSIX time of the last change applied there.
        modified_dates: Top-level section -> latest file mtime among the
            files owning that section (the modified-date cache).
        updated_at: ISO 8601 timestamp of the last save.
    """

    tree: dict[str, Any] = {}
    version: int = 0
    path_modified: dict[str, float] = {}
    modified_dates: dict[str, float] = {}
    updated_at: str | None = None

    model_config = {"frozen": True}


class WriteResult(BaseModel):
    """Outcome of ``FileStore.write_all()``.

    Attributes:
        written: Files created or rewritten (or that would be, in a dry run).
        removed: Tracked files deleted because they no longer own anything.
        unchanged: Files whose rendered bytes already matched disk.
        diffs: File -> unified diff of the change (populated on dry run).
    """

    written: list[str] = []
    removed: list[str] = []
    unchanged: list[str] = []
    diffs: dict[str, str] = {}

    model_config = {"frozen": True}


class RegenerationReport(BaseModel):
    """Outcome of one regeneration operation.

    Attributes:
        operation: ``"snapshot"``, ``"config"``, or ``"mappings"``.
        dry_run: Whether the operation ran without persisting anything.
        changes: Change operations computed (and applied unless dry run).
        snapshot_version: Snapshot version after the operation.
        mapping_changed: Whether the path map assignment changed.
        files_written: Config files written.
        files_removed: Config files removed.
        diffs: Per-file unified diffs (config dry runs).
        started_at: ISO 8601 timestamp when the operation started.
        completed_at: ISO 8601 timestamp when it completed.
    """

    operation: Literal["snapshot", "config", "mappings"]
    dry_run: bool = False
    changes: list[ChangeOp] = []
    snapshot_version: int = 0
    mapping_changed: bool = False
    files_written: list[str] = []
    files_removed: list[str] = []
    diffs: dict[str, str] = {}
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def added(self) -> list[ChangeOp]:
        return [c for c in self.changes if c.action == ChangeAction.ADD]

    @property
    def updated(self) -> list[ChangeOp]:
        return [c for c in self.changes if c.action == ChangeAction.UPDATE]

    @property
    def removed(self) -> list[ChangeOp]:
        return [c for c in self.changes if c.action == ChangeAction.REMOVE]

    def summary(self) -> str:
        """Format a short human-readable summary.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Regenerate {self.operation}"
            + (" (dry run)" if self.dry_run else ""),
            f"  Added:          {len(self.added)}",
            f"  Updated:        {len(self.updated)}",
            f"  Removed:        {len(self.removed)}",
            f"  Files written:  {len(self.files_written)}",
            f"  Files removed:  {len(self.files_removed)}",
            f"  Mapping changed: {'yes' if self.mapping_changed else 'no'}",
            f"  Snapshot version: {self.snapshot_version}",
        ]
        return "\n".join(lines)
