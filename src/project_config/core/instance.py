"""One configured project: the engine, its live state, and its write lock."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from project_config.config import Config
from project_config.sync.engine import AccessGate, ProjectConfig
from project_config.sync.mapper import PathMapBuilder
from project_config.sync.models import ChangeOp
from project_config.sync.runtime import ComponentRegistry, RuntimeState
from project_config.sync.settings import SystemSettings
from project_config.sync.state import SnapshotStore
from project_config.sync.store import FileStore

logger = logging.getLogger(__name__)

RUNTIME_FILE = "runtime.json"


@dataclass
class ConfigInstance:
    """Explicitly owned project config instance.

    Attributes:
        config: Resolved runtime configuration.
        project: The regeneration coordinator.
        live: Live state the coordinator applies to.
        lock: Serialises write operations from async callers.
    """

    config: Config
    project: ProjectConfig
    live: RuntimeState
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def settings(self) -> SystemSettings:
        """Typed accessor over the live tree."""
        return SystemSettings(self.live.current_tree)

    def persist_live(self) -> None:
        """Write live state back to ``<state_dir>/runtime.json``."""
        self.live.save()
        logger.debug("Persisted live state to %s", self.live.path)


def open_instance(
    config: Config,
    registry: ComponentRegistry | None = None,
    on_change: Callable[[ChangeOp], None] | None = None,
) -> ConfigInstance:
    """Wire a ``ProjectConfig`` for *config*.

    Live state is loaded from ``<state_dir>/runtime.json`` (empty when the
    file does not exist yet).

    Args:
        config: Validated runtime configuration.
        registry: Component factories for the live state.
        on_change: Callback run after each change applied to live state.

    Raises:
        PathMapConflictError: If two mount rules share a prefix.
    """
    state_dir = Path(config.state_dir)
    live = RuntimeState.load(state_dir / RUNTIME_FILE, registry=registry)
    project = ProjectConfig(
        store=FileStore(Path(config.config_dir)),
        snapshots=SnapshotStore(state_dir),
        builder=PathMapBuilder(config.mounts),
        live=live,
        gate=AccessGate(
            is_admin=config.admin, elevated_session=config.elevated_session
        ),
        on_change=on_change,
    )
    logger.debug(
        "Opened project config (config_dir=%s, state_dir=%s, %d mounts)",
        config.config_dir,
        config.state_dir,
        len(config.mounts),
    )
    return ConfigInstance(config=config, project=project, live=live)
