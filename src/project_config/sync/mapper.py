"""Mount-rule driven path map for config files.

Translates between tree paths and the config files that own them, using
the ordered mount rules from the tool settings plus fallback discovery.

Mapping resolution:

1. **Rule check** -- two rules with the same prefix are a fatal
   ``PathMapConflictError``.
2. **Declared mounts** -- each rule binds its prefix to a file, or to a
   directory whose ``<key>.yaml`` files hold ``prefix.<key>``.
3. **Fallback discovery** -- files covered by no rule are mounted at the
   root; each of their top-level keys is bound to them.
4. **Longest prefix wins** -- ``owner_of()`` resolves a path through the
   most specific binding; a root rule (prefix ``""``) catches the rest.

Rebuilding keeps entries for sections still present in the live tree;
entries for removed sections are pruned only on a full regeneration pass.
"""

from __future__ import annotations

import logging
from collections.abc import Container, Iterable
from pathlib import PurePosixPath
from typing import Any

from project_config.sync.errors import (
    ConflictError,
    PathError,
    PathMapConflictError,
    UnmappedPathError,
)
from project_config.sync.models import (
    FileManifest,
    MountKind,
    MountRule,
    PathMapEntry,
)
from project_config.sync.tree import (
    ConfigTree,
    MergePolicy,
    is_within,
    join_path,
    top_level_key,
)

logger = logging.getLogger(__name__)

CANONICAL_EXTENSION = ".yaml"
YAML_EXTENSIONS = (".yaml", ".yml")


def mount_point_for(file: str, rules: Iterable[MountRule]) -> str:
    """Return the tree prefix where *file*'s document is mounted.

    Args:
        file: POSIX path relative to the config directory.
        rules: Declared mount rules.

    Returns:
        The rule prefix for a file rule, ``prefix.<stem>`` for a file
        directly inside a directory rule, or ``""`` (the root) otherwise.
    """
    p = PurePosixPath(file)
    for rule in rules:
        if rule.kind == MountKind.FILE and rule.location == file:
            return rule.prefix
    for rule in rules:
        if (
            rule.kind == MountKind.DIRECTORY
            and p.suffix in YAML_EXTENSIONS
            and str(p.parent) + "/" == rule.location
        ):
            return join_path(rule.prefix, p.stem)
    return ""


def is_rule_covered(file: str, rules: Iterable[MountRule]) -> bool:
    """Return ``True`` if *file* is placed by a declared mount rule."""
    p = PurePosixPath(file)
    for rule in rules:
        if rule.kind == MountKind.FILE and rule.location == file:
            return True
        if (
            rule.kind == MountKind.DIRECTORY
            and str(p.parent) + "/" == rule.location
        ):
            return True
    return False


def mounted_fragment(fragment: dict[str, Any], mount_point: str) -> ConfigTree:
    """Place *fragment* at *mount_point* inside an otherwise empty tree."""
    tree = ConfigTree()
    tree.set(mount_point, fragment)
    return tree


# ---------------------------------------------------------------------------
# PathMap
# ---------------------------------------------------------------------------


class PathMap:
    """Bidirectional binding between tree prefixes and owning files.

    Args:
        entries: Path map entries; prefixes must be unique.
    """

    def __init__(self, entries: Iterable[PathMapEntry] = ()) -> None:
        self._entries: dict[str, PathMapEntry] = {}
        for entry in entries:
            self._entries[entry.prefix] = entry

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def entries(self) -> list[PathMapEntry]:
        """Entries sorted by prefix."""
        return [self._entries[k] for k in sorted(self._entries)]

    def get(self, prefix: str) -> PathMapEntry | None:
        return self._entries.get(prefix)

    def __contains__(self, prefix: object) -> bool:
        return prefix in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathMap):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PathMap({self.entries()!r})"

    def to_json(self) -> list[dict[str, Any]]:
        return [e.model_dump(mode="json") for e in self.entries()]

    @classmethod
    def from_json(cls, data: list[dict[str, Any]]) -> PathMap:
        return cls(PathMapEntry(**item) for item in data)

    # ------------------------------------------------------------------
    # Tree path -> file
    # ------------------------------------------------------------------

    def match(self, path: str) -> PathMapEntry | None:
        """Return the most specific entry whose prefix covers *path*."""
        best: PathMapEntry | None = None
        for prefix, entry in self._entries.items():
            if is_within(path, prefix) and (
                best is None or len(prefix) > len(best.prefix)
            ):
                best = entry
        return best

    def owner_of(self, path: str, existing: Container[str] = ()) -> str | None:
        """Return the file owning *path*, or ``None`` if unmapped.

        A path equal to a directory prefix has no single owning file.  A
        directory child is named ``<key>.yaml`` unless *existing* already
        holds it under another YAML extension.
        """
        entry = self.match(path)
        if entry is None:
            return None
        if entry.kind == MountKind.FILE:
            return entry.location
        rest = path[len(entry.prefix) :].lstrip(".") if entry.prefix else path
        if not rest:
            return None
        stem = f"{entry.location}{top_level_key(rest)}"
        canonical = stem + CANONICAL_EXTENSION
        if canonical not in existing:
            for name in (stem + ext for ext in YAML_EXTENSIONS):
                if name in existing:
                    return name
        return canonical

    # ------------------------------------------------------------------
    # File -> tree paths
    # ------------------------------------------------------------------

    def mount_point(self, file: str) -> str:
        """Return the prefix where *file*'s document is mounted."""
        for entry in self._entries.values():
            if entry.kind == MountKind.FILE and entry.location == file:
                return entry.prefix if entry.origin == "rule" else ""
        p = PurePosixPath(file)
        for entry in self._entries.values():
            if (
                entry.kind == MountKind.DIRECTORY
                and str(p.parent) + "/" == entry.location
            ):
                return join_path(entry.prefix, p.stem)
        return ""

    def prefixes_for(self, file: str) -> list[str]:
        """Return the tree prefixes owned by *file*, sorted."""
        prefixes = [
            e.prefix
            for e in self._entries.values()
            if e.kind == MountKind.FILE and e.location == file
        ]
        p = PurePosixPath(file)
        for entry in self._entries.values():
            if (
                entry.kind == MountKind.DIRECTORY
                and p.suffix in YAML_EXTENSIONS
                and str(p.parent) + "/" == entry.location
            ):
                prefixes.append(join_path(entry.prefix, p.stem))
        return sorted(prefixes)

    def references(self, file: str) -> bool:
        """Return ``True`` if *file* is a location this map writes to."""
        return bool(self.prefixes_for(file))

    # ------------------------------------------------------------------
    # Serialisation support
    # ------------------------------------------------------------------

    def partition(
        self, tree: ConfigTree, existing: Container[str] = ()
    ) -> dict[str, dict[str, Any]]:
        """Split *tree* into per-file documents.

        *existing* lists the files already on disk; see ``owner_of()``.

        Returns:
            Mapping of file -> document, each relative to the file's mount
            point.  Files are sorted.

        Raises:
            UnmappedPathError: If a leaf path has no owning file.
            PathError: If a non-mapping value sits exactly at a mount point.
        """
        documents: dict[str, ConfigTree] = {}
        for path, value in tree.leaves():
            entry = self.match(path)
            if (
                entry is not None
                and entry.kind == MountKind.DIRECTORY
                and path == entry.prefix
                and value == {}
            ):
                # An empty directory mount has no files to hold it.
                continue
            owner = self.owner_of(path, existing)
            if owner is None:
                raise UnmappedPathError(path)
            mount = self.mount_point(owner)
            if path == mount and not isinstance(value, dict):
                raise PathError(
                    f"Cannot write '{path}' to {owner}: a mounted document "
                    f"must be a mapping, not {type(value).__name__}"
                )
            relative = path[len(mount) :].lstrip(".") if mount else path
            documents.setdefault(owner, ConfigTree()).set(relative, value)
        return {f: documents[f].to_dict() for f in sorted(documents)}


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class PathMapBuilder:
    """Build ``PathMap`` instances from mount rules and parsed files.

    Args:
        rules: Declared mount rules (configuration, not computed).

    Raises:
        PathMapConflictError: If two rules claim the same prefix.
    """

    def __init__(self, rules: Iterable[MountRule] = ()) -> None:
        self.rules: list[MountRule] = list(rules)
        seen: dict[str, str] = {}
        for rule in self.rules:
            if rule.prefix in seen:
                raise PathMapConflictError(
                    rule.prefix or "<root>", [seen[rule.prefix], rule.location]
                )
            seen[rule.prefix] = rule.location

    @property
    def root_rule(self) -> MountRule | None:
        """The catch-all rule (prefix ``""``), if declared."""
        for rule in self.rules:
            if rule.prefix == "":
                return rule
        return None

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, manifest: FileManifest) -> PathMap:
        """Build a fresh path map for *manifest*.

        Raises:
            PathMapConflictError: If a discovered section is already bound
                to another file or rule.
        """
        entries: dict[str, PathMapEntry] = {}
        for rule in self.rules:
            entries[rule.prefix] = PathMapEntry(
                prefix=rule.prefix,
                location=rule.location,
                kind=rule.kind,
                origin="rule",
            )

        for file in manifest.files():
            if is_rule_covered(file, self.rules):
                continue
            fragment = manifest.entries[file].fragment
            for key in sorted(fragment):
                existing = entries.get(key)
                if existing is not None and existing.location != file:
                    raise PathMapConflictError(key, [existing.location, file])
                entries[key] = PathMapEntry(
                    prefix=key, location=file, origin="discovered"
                )
                logger.debug("Discovered section '%s' in %s", key, file)

        return PathMap(entries.values())

    def rebuild(
        self,
        manifest: FileManifest,
        previous: PathMap | None,
        live_tree: ConfigTree,
        prune: bool = False,
    ) -> PathMap:
        """Rebuild the map from *manifest*, carrying over live entries.

        Discovered entries from *previous* survive when their section is
        still present in *live_tree* and no file now claims it.

        Args:
            manifest: Current parsed files.
            previous: The map in effect before this rebuild.
            live_tree: Tree whose sections are considered present.
            prune: Also drop freshly discovered entries whose section is
                absent from *live_tree* (full regeneration pass).

        Returns:
            The rebuilt ``PathMap``.
        """
        merged = {e.prefix: e for e in self.build(manifest).entries()}
        if previous is not None:
            for entry in previous.entries():
                if entry.origin != "discovered" or entry.prefix in merged:
                    continue
                if live_tree.has(entry.prefix):
                    merged[entry.prefix] = entry
        result = PathMap(merged.values())
        return self.prune(result, live_tree) if prune else result

    @staticmethod
    def prune(path_map: PathMap, live_tree: ConfigTree) -> PathMap:
        """Drop discovered entries whose section is absent from *live_tree*."""
        kept = []
        for entry in path_map.entries():
            if entry.origin == "rule" or live_tree.has(entry.prefix):
                kept.append(entry)
            else:
                logger.info(
                    "Pruning stale mapping '%s' -> %s",
                    entry.prefix,
                    entry.location,
                )
        return PathMap(kept)

    def assign_unmapped(self, path_map: PathMap, tree: ConfigTree) -> PathMap:
        """Bind *tree*'s unowned top-level sections to the root rule's file.

        Maps from ``build()`` and ``rebuild()`` already carry the root rule's
        entry, so for them this only raises when no root rule is declared.
        The binding step serves maps assembled without the rule entries,
        such as one read back from a state file.

        Raises:
            UnmappedPathError: If a section has no owner and no root rule
                is declared.
        """
        unmapped = [s for s in tree.sections() if path_map.match(s) is None]
        if not unmapped:
            return path_map
        root = self.root_rule
        if root is None:
            raise UnmappedPathError(unmapped[0])
        for section in unmapped:
            logger.info(
                "Binding new section '%s' to root file %s",
                section,
                root.location,
            )
        root_entry = PathMapEntry(
            prefix="", location=root.location, kind=root.kind, origin="rule"
        )
        return PathMap([*path_map.entries(), root_entry])

    # ------------------------------------------------------------------
    # Ownership validation
    # ------------------------------------------------------------------

    def mount_point(self, file: str) -> str:
        return mount_point_for(file, self.rules)

    def assemble(self, manifest: FileManifest) -> ConfigTree:
        """Merge every fragment at its mount point into one tree.

        Ownership is validated first with a fail-on-conflict merge, then
        the tree is built with the normal overwrite-scalars policy.

        Raises:
            PathMapConflictError: If two files define the same path.
        """
        self.check_ownership(manifest)
        tree = ConfigTree()
        for file in manifest.files():
            fragment = manifest.entries[file].fragment
            tree.merge(
                mounted_fragment(fragment, self.mount_point(file)),
                MergePolicy.OVERWRITE_SCALARS,
            )
        return tree

    def check_ownership(self, manifest: FileManifest) -> None:
        """Verify no two files define the same tree path.

        Raises:
            PathMapConflictError: Naming the first colliding path and the
                files that define it.
        """
        combined = ConfigTree()
        mounted: dict[str, ConfigTree] = {}
        for file in manifest.files():
            fragment = manifest.entries[file].fragment
            piece = mounted_fragment(fragment, self.mount_point(file))
            mounted[file] = piece
            try:
                combined.merge(piece, MergePolicy.FAIL_ON_CONFLICT)
            except ConflictError as exc:
                claimants = [f for f, t in mounted.items() if t.has(exc.path)]
                raise PathMapConflictError(exc.path, claimants) from exc
