"""Config tree model: the canonical nested settings representation.

A ``ConfigTree`` wraps one rooted mapping whose internal nodes are dicts
and whose leaves are scalars (``str``, ``int``, ``float``, ``bool``,
``None``).  Lists are accepted as opaque leaves: they are compared and
replaced as a whole, never descended into.

Paths are keys joined by ``.``; the empty path ``""`` is the root.

Key design choices:

* **Owned data** -- the tree deep-copies whatever it is given and whatever
  it hands back from ``get()``, so callers can never alias its internals.
* **Strict equality** -- ``values_equal`` distinguishes ``True`` from ``1``
  and ``1`` from ``1.0``; plain ``==`` would hide a type change from the
  differ.
* **Deterministic traversal** -- ``walk()`` and ``leaves()`` visit sibling
  keys in sorted order, independent of insertion order.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from project_config.sync.errors import ConflictError, PathError
from project_config.validators import (
    PATH_DELIMITER,
    validate_path,
    validate_value,
)


class _NotFound:
    """Sentinel returned by ``ConfigTree.get()`` for absent paths."""

    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


class MergePolicy(str, Enum):
    """How ``ConfigTree.merge()`` treats paths defined on both sides."""

    OVERWRITE_SCALARS = "overwrite-scalars"
    FAIL_ON_CONFLICT = "fail-on-conflict"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def split_path(path: str) -> list[str]:
    """Split *path* into keys.  The root path yields an empty list.

    Raises:
        PathError: If *path* has empty segments.
    """
    ok, reason = validate_path(path)
    if not ok:
        raise PathError(reason)
    if path == "":
        return []
    return path.split(PATH_DELIMITER)


def join_path(*parts: str) -> str:
    """Join path fragments, skipping empty ones (the root)."""
    return PATH_DELIMITER.join(p for p in parts if p)


def top_level_key(path: str) -> str:
    """Return the first key of *path* (``""`` for the root)."""
    return path.split(PATH_DELIMITER, 1)[0] if path else ""


def is_within(path: str, prefix: str) -> bool:
    """Return ``True`` if *path* equals *prefix* or lies beneath it."""
    if prefix == "":
        return True
    return path == prefix or path.startswith(prefix + PATH_DELIMITER)


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality that also compares scalar types."""
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def is_leaf(value: Any) -> bool:
    """Leaves are non-mappings and empty mappings."""
    return not isinstance(value, dict) or not value


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class ConfigTree:
    """A rooted, nested key/value configuration tree.

    Args:
        data: Initial mapping.  Deep-copied; validated unless
            ``validate=False`` (used internally for already-validated
            data).

    Raises:
        ValueError: If *data* contains unsupported keys or values.
    """

    __slots__ = ("_root",)

    def __init__(
        self, data: Mapping[str, Any] | None = None, *, validate: bool = True
    ) -> None:
        root = dict(data) if data is not None else {}
        if validate:
            ok, reason = validate_value(root)
            if not ok:
                raise ValueError(reason)
        self._root: dict[str, Any] = copy.deepcopy(root)

    # ------------------------------------------------------------------
    # Conversion / comparison
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the underlying mapping."""
        return copy.deepcopy(self._root)

    def copy(self) -> ConfigTree:
        """Return an independent copy of this tree."""
        return ConfigTree(self._root, validate=False)

    def is_empty(self) -> bool:
        return not self._root

    def sections(self) -> list[str]:
        """Sorted top-level keys."""
        return sorted(self._root)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ConfigTree):
            return values_equal(self._root, other._root)
        if isinstance(other, Mapping):
            return values_equal(self._root, dict(other))
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ConfigTree({self._root!r})"

    # ------------------------------------------------------------------
    # Point access
    # ------------------------------------------------------------------

    def get(self, path: str, default: Any = NOT_FOUND) -> Any:
        """Return the value at *path*, or *default* (``NOT_FOUND``).

        Mappings and lists are returned as copies.
        """
        node: Any = self._root
        for key in split_path(path):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        if isinstance(node, (dict, list)):
            return copy.deepcopy(node)
        return node

    def has(self, path: str) -> bool:
        return self.get(path) is not NOT_FOUND

    def set(self, path: str, value: Any) -> None:
        """Set *value* at *path*, creating intermediate mappings.

        Raises:
            PathError: If an intermediate node holds a non-mapping value,
                or the root is set to a non-mapping.
            ValueError: If *value* is not a supported config value.
        """
        ok, reason = validate_value(value, path)
        if not ok:
            raise ValueError(reason)

        keys = split_path(path)
        if not keys:
            if not isinstance(value, dict):
                raise PathError("The root of a config tree must be a mapping")
            self._root = copy.deepcopy(value)
            return

        node = self._root
        for depth, key in enumerate(keys[:-1]):
            child = node.get(key, NOT_FOUND)
            if child is NOT_FOUND:
                child = node[key] = {}
            elif not isinstance(child, dict):
                blocked = PATH_DELIMITER.join(keys[: depth + 1])
                raise PathError(
                    f"Cannot set '{path}': '{blocked}' holds a "
                    f"{type(child).__name__} value"
                )
            node = child
        node[keys[-1]] = copy.deepcopy(value)

    def remove(self, path: str) -> bool:
        """Remove the value at *path*.

        Returns:
            ``True`` if something was removed, ``False`` if the path was
            absent.  Removing the root empties the tree.
        """
        keys = split_path(path)
        if not keys:
            had_data = bool(self._root)
            self._root = {}
            return had_data

        node: Any = self._root
        for key in keys[:-1]:
            if not isinstance(node, dict) or key not in node:
                return False
            node = node[key]
        if not isinstance(node, dict) or keys[-1] not in node:
            return False
        del node[keys[-1]]
        return True

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(
        self,
        other: ConfigTree | Mapping[str, Any],
        policy: MergePolicy = MergePolicy.OVERWRITE_SCALARS,
    ) -> ConfigTree:
        """Merge *other* into this tree in place and return ``self``.

        Mappings present on both sides are merged recursively.  Any other
        path defined on both sides is overwritten by *other* under
        ``OVERWRITE_SCALARS``; under ``FAIL_ON_CONFLICT`` the first such
        path (pre-order, sorted keys) raises ``ConflictError`` and this
        tree is left unchanged.
        """
        incoming = other._root if isinstance(other, ConfigTree) else dict(other)
        if not isinstance(other, ConfigTree):
            ok, reason = validate_value(incoming)
            if not ok:
                raise ValueError(reason)

        if policy is MergePolicy.FAIL_ON_CONFLICT:
            conflict = _first_conflict(self._root, incoming, "")
            if conflict is not None:
                raise ConflictError(conflict)

        _merge_into(self._root, incoming)
        return self

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def walk(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(path, value)`` for every node below the root, pre-order.

        Values are the tree's own objects; treat them as read-only.
        """
        yield from _walk(self._root, "")

    def leaves(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(path, value)`` for leaf nodes only, pre-order."""
        for path, value in self.walk():
            if is_leaf(value):
                yield path, value


def _walk(node: dict[str, Any], prefix: str) -> Iterator[tuple[str, Any]]:
    for key in sorted(node):
        path = join_path(prefix, key)
        value = node[key]
        yield path, value
        if isinstance(value, dict):
            yield from _walk(value, path)


def _first_conflict(
    base: dict[str, Any], incoming: dict[str, Any], prefix: str
) -> str | None:
    for key in sorted(incoming):
        if key not in base:
            continue
        path = join_path(prefix, key)
        ours, theirs = base[key], incoming[key]
        if isinstance(ours, dict) and isinstance(theirs, dict):
            found = _first_conflict(ours, theirs, path)
            if found is not None:
                return found
        else:
            return path
    return None


def _merge_into(base: dict[str, Any], incoming: dict[str, Any]) -> None:
    for key, theirs in incoming.items():
        ours = base.get(key, NOT_FOUND)
        if isinstance(ours, dict) and isinstance(theirs, dict):
            _merge_into(ours, theirs)
        else:
            base[key] = copy.deepcopy(theirs)
