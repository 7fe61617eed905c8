"""Snapshot persistence layer.

Manages the JSON files under the state directory that record what the
engine last applied:

* ``snapshot.json`` -- the applied tree, its version, per-path apply
  timestamps, and the modified-date cache.
* ``config_map.json`` -- the path map (tree prefix -> owning file).

Key design choices:

* **Atomic writes** -- every save goes to a temp file in the state
  directory and is moved into place with ``os.replace()``, so a reader
  sees either the old file or the new one.
* **Model at the boundary** -- files are validated into a ``Snapshot``
  on load, so a hand-edited state file fails loudly instead of silently
  corrupting a regeneration pass.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from project_config.file_handler import write_file_atomic
from project_config.sync.mapper import PathMap
from project_config.sync.models import FileManifest, Snapshot
from project_config.sync.tree import top_level_key

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "snapshot.json"
PATH_MAP_FILE = "config_map.json"


class ModifiedDateCache:
    """Top-level section -> latest mtime of the files owning it.

    Args:
        dates: Initial section -> POSIX mtime mapping.
    """

    def __init__(self, dates: dict[str, float] | None = None) -> None:
        self._dates = dict(dates or {})

    @classmethod
    def from_manifest(
        cls, manifest: FileManifest, mount_point: Callable[[str], str]
    ) -> ModifiedDateCache:
        """Compute the cache from parsed files.

        Args:
            manifest: Parsed config files with their mtimes.
            mount_point: Maps a file to the tree prefix it is mounted at.
        """
        dates: dict[str, float] = {}
        for file in manifest.files():
            entry = manifest.entries[file]
            mount = mount_point(file)
            sections = [top_level_key(mount)] if mount else list(entry.fragment)
            for section in sections:
                if entry.mtime > dates.get(section, float("-inf")):
                    dates[section] = entry.mtime
        return cls(dates)

    def get(self, section: str) -> float | None:
        return self._dates.get(section)

    def has_changed_since(self, section: str, timestamp: float) -> bool:
        """Return ``True`` if *section*'s files were modified after *timestamp*."""
        modified = self._dates.get(section)
        return modified is not None and modified > timestamp

    def to_dict(self) -> dict[str, float]:
        return dict(sorted(self._dates.items()))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModifiedDateCache):
            return NotImplemented
        return self._dates == other._dates

    __hash__ = None  # type: ignore[assignment]


class SnapshotStore:
    """Load and save the snapshot and path map for one project.

    Args:
        state_dir: Directory holding the state files (created on save).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def load(self) -> Snapshot:
        """Load the snapshot.

        Returns:
            The stored snapshot, or an empty one at version 0 when none
            has been saved yet.
        """
        path = self._state_dir / SNAPSHOT_FILE
        if not path.exists():
            return Snapshot()
        with open(path, encoding="utf-8") as fh:
            return Snapshot.model_validate(json.load(fh))

    def save(self, snapshot: Snapshot) -> Snapshot:
        """Persist *snapshot* atomically, stamping ``updated_at``.

        Returns:
            The snapshot as written.
        """
        stamped = snapshot.model_copy(
            update={"updated_at": datetime.now(timezone.utc).isoformat()}
        )
        self._write_json(SNAPSHOT_FILE, stamped.model_dump(mode="json"))
        logger.debug("Saved snapshot version %d", stamped.version)
        return stamped

    # ------------------------------------------------------------------
    # Path map
    # ------------------------------------------------------------------

    def load_path_map(self) -> PathMap | None:
        """Load the persisted path map, or ``None`` if there is none."""
        path = self._state_dir / PATH_MAP_FILE
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as fh:
            return PathMap.from_json(json.load(fh))

    def save_path_map(self, path_map: PathMap) -> None:
        """Persist *path_map* atomically."""
        self._write_json(PATH_MAP_FILE, path_map.to_json())
        logger.debug("Saved path map with %d entries", len(path_map))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write_json(self, name: str, data: object) -> None:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        text = json.dumps(data, indent=2, sort_keys=True) + "\n"
        write_file_atomic(self._state_dir / name, text)
