"""Shared pytest fixtures for project-config tests."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from project_config.config import Config
from project_config.core.instance import ConfigInstance, open_instance
from project_config.sync.engine import AccessGate, ProjectConfig
from project_config.sync.mapper import PathMapBuilder
from project_config.sync.models import MountRule
from project_config.sync.runtime import RuntimeState
from project_config.sync.state import SnapshotStore
from project_config.sync.store import FileStore

_ENV_VARS = (
    "PROJECT_CONFIG_DIR",
    "PROJECT_CONFIG_STATE_DIR",
    "PROJECT_CONFIG_ADMIN",
    "PROJECT_CONFIG_ELEVATED",
    "PROJECT_CONFIG_DEBUG",
    "PROJECT_CONFIG_SETTINGS",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's environment out of config resolution."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_yaml(root: Path, rel_path: str, text: str) -> Path:
    """Write dedented YAML *text* to ``root / rel_path``."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    return path


DEFAULT_MOUNTS = (
    MountRule(prefix="", location="project.yaml"),
    MountRule(prefix="sections", location="sections/"),
)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def make_project(config_dir: Path, state_dir: Path):
    """Factory building a ``ProjectConfig`` over the tmp config/state dirs."""

    def _make(
        mounts=DEFAULT_MOUNTS,
        live: RuntimeState | None = None,
        gate=None,
        on_change=None,
    ) -> ProjectConfig:
        return ProjectConfig(
            store=FileStore(config_dir),
            snapshots=SnapshotStore(state_dir),
            builder=PathMapBuilder(mounts),
            live=live if live is not None else RuntimeState(),
            gate=gate or AccessGate(is_admin=True, elevated_session=True),
            on_change=on_change,
        )

    return _make


@pytest.fixture
def instance(config_dir: Path, state_dir: Path) -> ConfigInstance:
    """An opened instance with access granted, as the MCP server holds one."""
    config = Config(
        config_dir=str(config_dir),
        state_dir=str(state_dir),
        mounts=DEFAULT_MOUNTS,
        admin=True,
        elevated_session=True,
    )
    return open_instance(config)
