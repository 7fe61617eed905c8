"""Typed read access to system settings.

Application code asks for settings by category (``get_settings("email")``)
or by path (``get("system.name")``).  Categories resolve to tree sections
through an explicit lookup table rather than attribute magic.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from project_config.sync.errors import PathError
from project_config.sync.tree import NOT_FOUND, ConfigTree

CATEGORY_SECTIONS: dict[str, str] = {
    "general": "system",
    "email": "email",
    "users": "users",
    "routes": "routes",
    "sites": "sites",
}


class SystemSettings:
    """Read-only view of settings in a config tree.

    Args:
        source: Zero-argument callable returning the current tree, so the
            view always reflects the latest applied state.
        categories: Category -> section lookup table.
    """

    def __init__(
        self,
        source: Callable[[], ConfigTree],
        categories: dict[str, str] | None = None,
    ) -> None:
        self._source = source
        self._categories = dict(categories or CATEGORY_SECTIONS)

    def categories(self) -> list[str]:
        return sorted(self._categories)

    def get(self, path: str, default: Any = None) -> Any:
        """Return the value at *path*, or *default* when absent."""
        value = self._source().get(path)
        return default if value is NOT_FOUND else value

    def get_settings(self, category: str) -> dict[str, Any]:
        """Return all settings in *category* (``{}`` when none are set).

        Raises:
            PathError: If *category* is not a known category, or its section
                holds a non-mapping value.
        """
        section = self._categories.get(category)
        if section is None:
            known = ", ".join(self.categories())
            raise PathError(
                f"Unknown settings category '{category}'. Known categories: {known}"
            )
        value = self._source().get(section)
        if value is NOT_FOUND:
            return {}
        if not isinstance(value, dict):
            raise PathError(
                f"Settings section '{section}' must be a mapping, "
                f"got {type(value).__name__}"
            )
        return value
