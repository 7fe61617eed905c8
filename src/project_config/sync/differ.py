"""Diff and apply for config trees.

``diff_trees`` computes the ordered edit list that turns one tree into
another; ``apply_changes`` replays such a list onto a target, firing a
callback after each successful mutation.  ``generate_diff`` is a thin
wrapper around ``difflib.unified_diff`` for previewing file rewrites.

Ordering contract:

* Edits are emitted in pre-order of the path namespace, visiting sibling
  keys in sorted order.
* Within one mapping, removals come before additions and updates, so an
  apply pass never holds a stale key next to its replacement.
* A value whose type changes (scalar <-> mapping) yields one ``update``
  carrying the whole replacement, never a remove followed by an add.
"""

from __future__ import annotations

import copy
import difflib
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from project_config.sync.errors import ApplyError, PathError
from project_config.sync.models import ChangeAction, ChangeOp
from project_config.sync.tree import (
    NOT_FOUND,
    ConfigTree,
    join_path,
    values_equal,
)

logger = logging.getLogger(__name__)


class ChangeTarget(Protocol):
    """Anything ``apply_changes`` can mutate (a tree or the live state)."""

    def get(self, path: str, default: Any = ...) -> Any: ...

    def set(self, path: str, value: Any) -> None: ...

    def remove(self, path: str) -> bool: ...


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


def diff_trees(
    old: ConfigTree | dict[str, Any], new: ConfigTree | dict[str, Any]
) -> list[ChangeOp]:
    """Compute the edits that turn *old* into *new*.

    Args:
        old: The tree to start from.
        new: The tree to end at.

    Returns:
        Ordered list of ``ChangeOp``.  Empty when the trees are equal.
    """
    old_data = old.to_dict() if isinstance(old, ConfigTree) else old
    new_data = new.to_dict() if isinstance(new, ConfigTree) else new
    ops: list[ChangeOp] = []
    _diff_mapping(old_data, new_data, "", ops)
    return ops


def _diff_mapping(
    old: dict[str, Any],
    new: dict[str, Any],
    prefix: str,
    ops: list[ChangeOp],
) -> None:
    for key in sorted(old.keys() - new.keys()):
        ops.append(
            ChangeOp.remove(join_path(prefix, key), copy.deepcopy(old[key]))
        )

    for key in sorted(new):
        path = join_path(prefix, key)
        theirs = new[key]
        if key not in old:
            ops.append(ChangeOp.add(path, copy.deepcopy(theirs)))
            continue

        ours = old[key]
        if isinstance(ours, dict) and isinstance(theirs, dict):
            _diff_mapping(ours, theirs, path, ops)
        elif not values_equal(ours, theirs):
            ops.append(
                ChangeOp.update(
                    path, copy.deepcopy(ours), copy.deepcopy(theirs)
                )
            )


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


def apply_changes(
    ops: Iterable[ChangeOp],
    target: ChangeTarget,
    on_change: Callable[[ChangeOp], None] | None = None,
    strict: bool = False,
) -> list[ChangeOp]:
    """Apply *ops* to *target* in order.

    Add and update set the new value (last writer wins); remove deletes
    the path and is a no-op when it is already gone.  With ``strict=True``
    each op must also find the target in the state the diff expected:
    add requires the path to be absent, update and remove require it to
    hold ``old_value``.

    *on_change* runs synchronously after each successful mutation.  An
    exception it raises counts as a failure of that op.

    Args:
        ops: Edits to apply, typically from ``diff_trees``.
        target: Tree or live state to mutate.
        on_change: Optional per-op callback.
        strict: Enforce diff preconditions.

    Returns:
        The ops that were applied.

    Raises:
        ApplyError: On the first failing op.  Ops applied before it stay
            applied; there is no rollback.
    """
    applied: list[ChangeOp] = []
    for op in ops:
        try:
            if strict:
                _check_precondition(op, target)
            if op.action == ChangeAction.REMOVE:
                target.remove(op.path)
            else:
                target.set(op.path, copy.deepcopy(op.new_value))
            if on_change is not None:
                on_change(op)
        except Exception as exc:
            logger.error(
                "Apply stopped at %s %s after %d change(s): %s",
                op.action.value,
                op.path,
                len(applied),
                exc,
            )
            raise ApplyError(op, applied, exc) from exc
        applied.append(op)
        logger.debug("Applied %s", op.describe())
    return applied


def _check_precondition(op: ChangeOp, target: ChangeTarget) -> None:
    current = target.get(op.path, NOT_FOUND)
    if op.action == ChangeAction.ADD:
        if current is not NOT_FOUND:
            raise PathError(f"Cannot add '{op.path}': path already exists")
        return
    if current is NOT_FOUND:
        raise PathError(
            f"Cannot {op.action.value} '{op.path}': path does not exist"
        )
    if not values_equal(current, op.old_value):
        raise PathError(
            f"Cannot {op.action.value} '{op.path}': current value "
            f"{current!r} differs from expected {op.old_value!r}"
        )


# ---------------------------------------------------------------------------
# Text diff
# ---------------------------------------------------------------------------


def generate_diff(
    old_content: str,
    new_content: str,
    label_old: str = "old",
    label_new: str = "new",
) -> str:
    """Generate a unified diff between two strings.

    Returns:
        A unified diff string.  Empty string if the contents are identical.
    """
    return "".join(
        difflib.unified_diff(
            old_content.splitlines(True),
            new_content.splitlines(True),
            fromfile=label_old,
            tofile=label_new,
        )
    )
