"""Tool registry with permission filtering.

Operators can hand an agent a read-only tool set (``CONFIG_VIEW``) and
keep the regeneration tools (``CONFIG_ADMIN``) for administrators.
``CONFIG_ADMIN`` implies ``CONFIG_VIEW``: an admin can always inspect what
they are about to regenerate.

- ``ToolSpec`` binds a Tool definition to the permissions it needs and an
  async handler ``(instance, args) -> CallToolResult``.
- ``ToolRegistry`` keeps the permitted specs and dispatches calls,
  turning exceptions into structured error results.
- ``load_permissions_file`` reads one permission name per line.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...core.instance import ConfigInstance
from ...sync.errors import ProjectConfigError
from .errors import build_error_response, translate_engine_error

logger = logging.getLogger(__name__)

CONFIG_VIEW = "CONFIG_VIEW"
CONFIG_ADMIN = "CONFIG_ADMIN"

# permission -> permissions it grants in addition to itself
IMPLIED_PERMISSIONS: dict[str, frozenset[str]] = {
    CONFIG_ADMIN: frozenset({CONFIG_VIEW}),
}

Handler = Callable[[ConfigInstance, dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool.

    Attributes:
        tool: Name, description, and input schema.
        permissions: Permissions the caller needs; empty means always
            available.
        handler: Coroutine run for each call.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Handler

    @property
    def name(self) -> str:
        return self.tool.name


def expand_permissions(permissions: Iterable[str]) -> frozenset[str]:
    """Return *permissions* plus everything they imply."""
    granted = set(permissions)
    for permission in list(granted):
        granted |= IMPLIED_PERMISSIONS.get(permission, frozenset())
    return frozenset(granted)


class ToolRegistry:
    """The tools one server exposes.

    With ``allowed_permissions=None`` every spec is kept.  Otherwise a spec
    is kept when it needs no permission or when every permission it needs
    is granted (directly or by implication).
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        granted = (
            None
            if allowed_permissions is None
            else expand_permissions(allowed_permissions)
        )
        self._specs: dict[str, ToolSpec] = {
            spec.name: spec
            for spec in specs
            if granted is None or spec.permissions <= granted
        }
        dropped = len(specs) - len(self._specs)
        if dropped:
            logger.debug("Filtered out %d tool(s) by permission", dropped)

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        instance: ConfigInstance,
    ) -> types.CallToolResult:
        """Run the handler registered under *name*.

        Raises:
            ValueError: If *name* is unknown or was filtered out.  Errors
                raised by the handler never escape; they come back as
                ``isError`` results.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await spec.handler(instance, arguments or {})
        except ProjectConfigError as e:
            logger.warning("%s failed: %s", name, e)
            return translate_engine_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error", str(e), "Check parameter values and retry."
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log, fix the cause, and retry.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read granted permissions from *path*.

    One ``UPPER_SNAKE_CASE`` name per line; blank lines and ``#`` comments
    are skipped::

        # inspection only
        CONFIG_VIEW

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: On a malformed name, or when no name is listed.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        name = line.split("#", 1)[0].strip()
        if not name:
            continue
        if not (name.isupper() and name.replace("_", "").isalpha()):
            raise ValueError(
                f"Invalid permission '{name}' at line {line_num} in {path}: "
                f"expected one of {CONFIG_VIEW}, {CONFIG_ADMIN}"
            )
        permissions.add(name)
    if not permissions:
        raise ValueError(f"No permissions found in {path}")
    return frozenset(permissions)
