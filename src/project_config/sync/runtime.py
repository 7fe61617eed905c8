"""Live runtime state and the component registry.

``RuntimeState`` is the state a running application actually uses: a
config tree plus the components built from it.  It is the target that
``ProjectConfig.regenerate_snapshot()`` applies changes to and the source
that ``ProjectConfig.regenerate_config()`` reads from.

``ComponentRegistry`` maps a top-level section (the component type id,
e.g. ``"sections"`` or ``"sites"``) to a factory ``(key, config) ->
component``.  Every mapping-valued entry under a registered section is
materialised through its factory whenever the entry changes.  A factory
that raises fails the change, leaving the state as it was before it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from project_config.file_handler import write_file_atomic
from project_config.sync.tree import NOT_FOUND, ConfigTree, split_path

logger = logging.getLogger(__name__)

ComponentFactory = Callable[[str, dict[str, Any]], Any]


class ComponentRegistry:
    """Component type id -> factory, populated once at startup."""

    def __init__(self) -> None:
        self._factories: dict[str, ComponentFactory] = {}

    def register(self, type_id: str, factory: ComponentFactory) -> None:
        """Register *factory* for the section *type_id*.

        Raises:
            ValueError: If *type_id* already has a factory.
        """
        if type_id in self._factories:
            raise ValueError(f"Component type '{type_id}' is already registered")
        self._factories[type_id] = factory
        logger.debug("Registered component type '%s'", type_id)

    def get(self, type_id: str) -> ComponentFactory | None:
        return self._factories.get(type_id)

    def factory(self, type_id: str) -> ComponentFactory:
        """Return the factory for *type_id*.

        Raises:
            KeyError: If nothing is registered for *type_id*.
        """
        try:
            return self._factories[type_id]
        except KeyError:
            raise KeyError(f"No component type '{type_id}' registered") from None

    def types(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._factories


class RuntimeState:
    """In-memory live state with optional JSON persistence.

    Args:
        tree: Initial tree (copied).
        registry: Component factories; sections without one hold plain
            data only.
        path: JSON file backing this state for ``load()`` / ``save()``.
    """

    def __init__(
        self,
        tree: ConfigTree | None = None,
        registry: ComponentRegistry | None = None,
        path: Path | None = None,
    ) -> None:
        self._tree = tree.copy() if tree is not None else ConfigTree()
        self._registry = registry or ComponentRegistry()
        self._components: dict[str, dict[str, Any]] = {}
        self.path = path
        for section in self._tree.sections():
            self._components.update(self._materialize(self._tree, section))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls, path: Path, registry: ComponentRegistry | None = None
    ) -> RuntimeState:
        """Load state from *path*; a missing file gives an empty state."""
        path = Path(path)
        tree = ConfigTree()
        if path.exists():
            with open(path, encoding="utf-8") as fh:
                tree = ConfigTree(json.load(fh))
        return cls(tree, registry=registry, path=path)

    def save(self) -> None:
        """Write the tree to ``self.path`` atomically.

        Raises:
            ValueError: If the state has no backing path.
        """
        if self.path is None:
            raise ValueError("RuntimeState has no backing file")
        text = json.dumps(self._tree.to_dict(), indent=2, sort_keys=True)
        write_file_atomic(self.path, text + "\n")

    # ------------------------------------------------------------------
    # Tree access
    # ------------------------------------------------------------------

    def current_tree(self) -> ConfigTree:
        """Return a copy of the live tree."""
        return self._tree.copy()

    def get(self, path: str, default: Any = NOT_FOUND) -> Any:
        return self._tree.get(path, default)

    def set(self, path: str, value: Any) -> None:
        """Set *value* at *path* and rebuild the affected component.

        Raises:
            PathError: If *path* cannot be set.
            Exception: Whatever the component factory raises; the state is
                unchanged in that case.
        """
        candidate = self._tree.copy()
        candidate.set(path, value)
        self._commit(candidate, path)

    def remove(self, path: str) -> bool:
        """Remove *path*, dropping or rebuilding the affected component."""
        candidate = self._tree.copy()
        removed = candidate.remove(path)
        if removed:
            self._commit(candidate, path)
        return removed

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def components(self, section: str) -> dict[str, Any]:
        """Return the components built for *section*, keyed by entry key."""
        return dict(self._components.get(section, {}))

    def component(self, section: str, key: str) -> Any:
        """Return one component, or ``None`` if it was not built."""
        return self._components.get(section, {}).get(key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit(self, candidate: ConfigTree, path: str) -> None:
        keys = split_path(path)
        if not keys:
            rebuilt: dict[str, dict[str, Any]] = {}
            for section in candidate.sections():
                rebuilt.update(self._materialize(candidate, section))
            self._tree, self._components = candidate, rebuilt
            return

        section = keys[0]
        components = dict(self._components)
        if len(keys) == 1:
            components.pop(section, None)
            components.update(self._materialize(candidate, section))
        elif section in self._registry:
            built = dict(components.get(section, {}))
            built.pop(keys[1], None)
            entry = candidate.get(f"{section}.{keys[1]}")
            if isinstance(entry, dict):
                built[keys[1]] = self._build(section, keys[1], entry)
            components[section] = built
        self._tree, self._components = candidate, components

    def _materialize(
        self, tree: ConfigTree, section: str
    ) -> dict[str, dict[str, Any]]:
        if section not in self._registry:
            return {}
        data = tree.get(section)
        if not isinstance(data, dict):
            return {section: {}}
        return {
            section: {
                key: self._build(section, key, value)
                for key, value in sorted(data.items())
                if isinstance(value, dict)
            }
        }

    def _build(self, section: str, key: str, config: dict[str, Any]) -> Any:
        factory = self._registry.factory(section)
        logger.debug("Building %s component '%s'", section, key)
        return factory(key, config)
