"""YAML file store for the config directory.

Loads every ``*.yaml`` / ``*.yml`` file under the config directory into a
``FileManifest`` and writes a config tree back out through a ``PathMap``.

Parsing uses a ``SafeLoader`` subclass that rejects duplicate and
non-string keys and leaves ISO dates as plain strings.  Rendering uses a
``SafeDumper`` subclass with sorted keys and block style so the same tree
always produces the same bytes.

Writes are staged: every changed file is written to a temp file beside
its target first, and only when all of them are staged are they moved
into place.  A failure while staging leaves every existing file as it was.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from yaml.constructor import ConstructorError

from project_config.file_handler import (
    commit_staged,
    discard_staged,
    read_file_with_encoding,
    relative_posix,
    stage_file,
)
from project_config.sync.differ import generate_diff
from project_config.sync.errors import ParseError
from project_config.sync.mapper import YAML_EXTENSIONS, PathMap
from project_config.sync.models import FileEntry, FileManifest, WriteResult
from project_config.sync.tree import ConfigTree, values_equal
from project_config.validators import validate_key, validate_value

logger = logging.getLogger(__name__)

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


# ---------------------------------------------------------------------------
# YAML dialect
# ---------------------------------------------------------------------------


class ConfigYamlLoader(yaml.SafeLoader):
    """SafeLoader with strict mapping keys and no implicit timestamps."""


ConfigYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_mapping(
    loader: ConfigYamlLoader, node: yaml.MappingNode
) -> dict[str, Any]:
    loader.flatten_mapping(node)
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        ok, reason = validate_key(key)
        if not ok:
            raise ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                reason,
                key_node.start_mark,
            )
        if key in mapping:
            raise ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"found duplicate key '{key}'",
                key_node.start_mark,
            )
        mapping[key] = loader.construct_object(value_node, deep=True)
    return mapping


ConfigYamlLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping
)


class ConfigYamlDumper(yaml.SafeDumper):
    """SafeDumper that never emits anchors and indents block sequences."""

    def ignore_aliases(self, data: Any) -> bool:
        return True

    def increase_indent(self, flow: bool = False, indentless: bool = False):
        return super().increase_indent(flow, False)


def parse_document(text: str, file: str) -> dict[str, Any]:
    """Parse one YAML document into a mapping.

    Args:
        text: File contents.
        file: Relative path, used in error messages.

    Returns:
        The parsed mapping (``{}`` for an empty document).

    Raises:
        ParseError: On malformed YAML, duplicate or invalid keys, a
            non-mapping root, or unsupported value types.
    """
    try:
        data = yaml.load(text, Loader=ConfigYamlLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 1 if mark is not None else None
        reason = getattr(exc, "problem", None) or str(exc)
        raise ParseError(file, line, reason) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(
            file,
            1,
            f"document root must be a mapping, not {type(data).__name__}",
        )
    ok, reason = validate_value(data)
    if not ok:
        raise ParseError(file, None, reason)
    return data


def render_document(document: dict[str, Any]) -> str:
    """Render *document* as deterministic YAML text."""
    return yaml.dump(
        document,
        Dumper=ConfigYamlDumper,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
        indent=2,
        width=4096,
    )


# ---------------------------------------------------------------------------
# FileStore
# ---------------------------------------------------------------------------


class FileStore:
    """Reads and writes the YAML files under one config directory.

    Args:
        config_dir: Root of the config file tree.
        extensions: File suffixes treated as config files.
    """

    def __init__(
        self,
        config_dir: Path,
        extensions: tuple[str, ...] = YAML_EXTENSIONS,
    ) -> None:
        self.config_dir = Path(config_dir)
        self.extensions = extensions

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _iter_files(self) -> list[Path]:
        if not self.config_dir.is_dir():
            return []
        found = []
        for path in self.config_dir.rglob("*"):
            if path.suffix not in self.extensions or not path.is_file():
                continue
            rel_parts = path.relative_to(self.config_dir).parts
            if any(part.startswith(".") for part in rel_parts):
                continue
            found.append(path)
        return sorted(found, key=lambda p: relative_posix(p, self.config_dir))

    def stat_all(self) -> dict[str, float]:
        """Return ``{relative path: mtime}`` for every config file."""
        return {
            relative_posix(p, self.config_dir): p.stat().st_mtime
            for p in self._iter_files()
        }

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load_file(self, rel_path: str) -> FileEntry:
        """Parse one file relative to the config directory.

        Raises:
            ParseError: If the file cannot be parsed.
        """
        path = self.config_dir / rel_path
        text, _encoding = read_file_with_encoding(path)
        fragment = parse_document(text, rel_path)
        return FileEntry(
            path=rel_path, fragment=fragment, mtime=path.stat().st_mtime
        )

    def load_all(self) -> FileManifest:
        """Parse every config file.

        Raises:
            ParseError: On the first malformed file; no partial manifest
                is returned.
        """
        entries: dict[str, FileEntry] = {}
        for path in self._iter_files():
            rel = relative_posix(path, self.config_dir)
            entries[rel] = self.load_file(rel)
        logger.debug("Loaded %d config file(s) from %s", len(entries), self.config_dir)
        return FileManifest(entries=entries)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def render(self, tree: ConfigTree, path_map: PathMap) -> dict[str, str]:
        """Render *tree* into ``{file: yaml text}`` through *path_map*.

        Raises:
            UnmappedPathError: If some leaf of *tree* has no owning file.
        """
        on_disk = set(self.stat_all())
        return {
            file: render_document(document)
            for file, document in path_map.partition(tree, on_disk).items()
        }

    def write_all(
        self,
        tree: ConfigTree,
        path_map: PathMap,
        dry_run: bool = False,
    ) -> WriteResult:
        """Write *tree* to disk so the files reproduce it.

        Only files whose content differs are written; a file that already
        holds the same data in another layout is left alone.  A directory
        child stored as ``.yml`` keeps that name.  Files the map
        writes to that end up owning nothing are removed.

        Args:
            tree: Tree to persist.
            path_map: Ownership map used to split the tree.
            dry_run: Compute the plan and diffs without touching disk.

        Returns:
            A ``WriteResult`` describing written, removed, and unchanged
            files, with unified diffs for every change.

        Raises:
            UnmappedPathError: If some leaf of *tree* has no owning file.
            OSError: If staging or committing a file fails.
        """
        existing = {
            relative_posix(p, self.config_dir): p for p in self._iter_files()
        }
        documents = path_map.partition(tree, existing)
        rendered = {f: render_document(d) for f, d in documents.items()}

        written: list[str] = []
        unchanged: list[str] = []
        diffs: dict[str, str] = {}
        for file, text in rendered.items():
            old_text = ""
            if file in existing:
                old_text, _encoding = read_file_with_encoding(existing[file])
            if file in existing and (
                old_text == text
                or values_equal(parse_document(old_text, file), documents[file])
            ):
                unchanged.append(file)
                continue
            written.append(file)
            diffs[file] = generate_diff(old_text, text, f"a/{file}", f"b/{file}")

        removed = [
            file
            for file in sorted(existing)
            if file not in rendered and path_map.references(file)
        ]
        for file in removed:
            old_text, _encoding = read_file_with_encoding(existing[file])
            diffs[file] = generate_diff(old_text, "", f"a/{file}", "/dev/null")

        if not dry_run:
            self._commit(rendered, written, removed)
            logger.info(
                "Wrote %d file(s), removed %d, %d unchanged",
                len(written),
                len(removed),
                len(unchanged),
            )

        return WriteResult(
            written=written, removed=removed, unchanged=unchanged, diffs=diffs
        )

    def _commit(
        self, rendered: dict[str, str], written: list[str], removed: list[str]
    ) -> None:
        staged: list[tuple[Path, Path]] = []
        try:
            for file in written:
                target = self.config_dir / file
                staged.append((stage_file(target, rendered[file]), target))
        except BaseException:
            discard_staged(staged)
            raise

        commit_staged(staged)
        for file in removed:
            try:
                os.unlink(self.config_dir / file)
            except FileNotFoundError:
                logger.debug("File already removed: %s", file)
