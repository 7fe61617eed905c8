"""Tests for the SystemSettings accessor."""

from __future__ import annotations

import pytest
from conftest import write_yaml

from project_config.sync.errors import PathError
from project_config.sync.runtime import RuntimeState
from project_config.sync.settings import CATEGORY_SECTIONS, SystemSettings
from project_config.sync.tree import ConfigTree


def _settings(data: dict) -> SystemSettings:
    tree = ConfigTree(data)
    return SystemSettings(lambda: tree)


class TestSystemSettings:
    def test_get_by_path(self):
        settings = _settings({"system": {"name": "Site"}})
        assert settings.get("system.name") == "Site"
        assert settings.get("system.missing") is None
        assert settings.get("system.missing", "fallback") == "fallback"

    def test_general_category_maps_to_system(self):
        settings = _settings({"system": {"name": "Site", "live": True}})
        assert settings.get_settings("general") == {"name": "Site", "live": True}

    def test_absent_category_section_is_empty(self):
        assert _settings({}).get_settings("email") == {}

    def test_unknown_category_raises(self):
        with pytest.raises(PathError, match="Unknown settings category"):
            _settings({}).get_settings("nope")

    def test_non_mapping_section_raises(self):
        with pytest.raises(PathError, match="must be a mapping"):
            _settings({"email": "flat"}).get_settings("email")

    def test_custom_category_table(self):
        tree = ConfigTree({"mail": {"host": "smtp"}})
        settings = SystemSettings(lambda: tree, categories={"email": "mail"})
        assert settings.categories() == ["email"]
        assert settings.get_settings("email") == {"host": "smtp"}

    def test_default_categories(self):
        assert _settings({}).categories() == sorted(CATEGORY_SECTIONS)

    def test_follows_live_state(self):
        live = RuntimeState()
        settings = SystemSettings(live.current_tree)
        assert settings.get("system.name") is None
        live.set("system.name", "Site")
        assert settings.get("system.name") == "Site"


class TestInstanceSettings:
    def test_reads_live_state_after_regeneration(self, instance, config_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\nemail:\n  host: smtp\n")
        assert instance.settings.get("system.name") is None

        instance.project.regenerate_snapshot()

        assert instance.settings.get("system.name") == "Site"
        assert instance.settings.get_settings("email") == {"host": "smtp"}
