"""Error taxonomy for the project config engine.

Every error raised by the engine derives from ``ProjectConfigError`` so the
CLI and the MCP tool registry can translate them in one place.  None of
these are retried internally: each names the file, path, or operation that
needs an operator's attention.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ChangeOp


class ProjectConfigError(Exception):
    """Base error for the project config engine."""


class PathError(ProjectConfigError, ValueError):
    """Raised for malformed tree paths or impossible path operations."""


class ParseError(ProjectConfigError):
    """A config file could not be parsed.

    Attributes:
        file: Path of the offending file relative to the config directory.
        line: 1-based line number, or ``None`` when unknown.
        reason: Parser message.
    """

    def __init__(self, file: str, line: int | None, reason: str) -> None:
        self.file = file
        self.line = line
        self.reason = reason
        location = f"{file}:{line}" if line is not None else file
        super().__init__(f"Failed to parse {location}: {reason}")


class ConflictError(ProjectConfigError):
    """Two trees define the same path under a fail-on-conflict merge."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Conflicting definitions for path '{path}'")


class PathMapConflictError(ProjectConfigError):
    """Two mount rules or two files claim the same tree path."""

    def __init__(self, path: str, claimants: list[str]) -> None:
        self.path = path
        self.claimants = list(claimants)
        super().__init__(
            f"Path '{path}' is claimed by more than one source: "
            + ", ".join(self.claimants)
        )


class UnmappedPathError(ProjectConfigError):
    """A tree path has no owning file under the current path map."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"No config file owns path '{path}'. Add a mount rule for it "
            "or declare a root mount (prefix \"\")."
        )


class ApplyError(ProjectConfigError):
    """A change operation failed while being applied.

    Attributes:
        failed_op: The operation that raised.
        applied: Operations applied successfully before the failure.
        cause: The underlying exception.
    """

    def __init__(
        self,
        failed_op: ChangeOp,
        applied: list[ChangeOp],
        cause: BaseException,
    ) -> None:
        self.failed_op = failed_op
        self.applied = list(applied)
        self.cause = cause
        super().__init__(
            f"Failed to apply {failed_op.action.value} at "
            f"'{failed_op.path}' after {len(self.applied)} successful "
            f"change(s): {cause}"
        )


class AuthorizationError(ProjectConfigError):
    """The caller lacks admin privilege or an elevated session."""
