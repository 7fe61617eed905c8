"""Tests for the project config MCP tool handlers, run against a real instance."""

import json

import yaml

from conftest import write_yaml
from project_config.mcp.tools import ALL_SPECS, ToolRegistry
from project_config.sync.engine import AccessGate


def _registry() -> ToolRegistry:
    return ToolRegistry(ALL_SPECS)


def _text(result) -> str:
    return result.content[0].text


class TestToolDefinitions:
    def test_names(self):
        assert [t.name for t in _registry().list_tools()] == [
            "config_regenerate_snapshot",
            "config_regenerate_config",
            "config_regenerate_mappings",
            "config_status",
            "config_get",
        ]

    def test_write_tools_not_read_only(self):
        tools = {t.name: t for t in _registry().list_tools()}
        assert tools["config_regenerate_config"].annotations.readOnlyHint is False


class TestRegenerateSnapshotTool:
    async def test_applies_and_persists(self, instance, config_dir, state_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        write_yaml(config_dir, "sections/news.yaml", "handle: news\n")

        result = await _registry().call_tool("config_regenerate_snapshot", {}, instance)

        assert not result.isError
        assert result.structuredContent["counts"]["added"] == 2
        assert instance.live.get("sections.news.handle") == "news"
        saved = json.loads((state_dir / "runtime.json").read_text())
        assert saved["system"] == {"name": "Site"}

    async def test_parse_error_reported(self, instance, config_dir):
        write_yaml(config_dir, "sections/news.yaml", "handle: [news\n")
        result = await _registry().call_tool("config_regenerate_snapshot", {}, instance)
        assert result.isError is True
        assert _text(result).startswith("Error (parse_error)")
        assert "sections/news.yaml" in _text(result)

    async def test_denied_without_elevated_session(self, instance, config_dir, state_dir):
        instance.project.gate = AccessGate(is_admin=True, elevated_session=False)
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        result = await _registry().call_tool("config_regenerate_snapshot", {}, instance)
        assert result.isError is True
        assert "permission_denied" in _text(result)
        assert not state_dir.exists()


class TestRegenerateConfigTool:
    async def _seed(self, instance, config_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        await _registry().call_tool("config_regenerate_snapshot", {}, instance)
        instance.live.set("system.name", "Renamed")

    async def test_dry_run_previews(self, instance, config_dir):
        await self._seed(instance, config_dir)
        result = await _registry().call_tool(
            "config_regenerate_config", {"dry_run": True}, instance
        )
        assert not result.isError
        assert "[WRITE] project.yaml" in _text(result)
        assert result.structuredContent["dry_run"] is True
        assert yaml.safe_load((config_dir / "project.yaml").read_text()) == {
            "system": {"name": "Site"}
        }

    async def test_writes_files(self, instance, config_dir):
        await self._seed(instance, config_dir)
        result = await _registry().call_tool("config_regenerate_config", {}, instance)
        assert not result.isError
        assert result.structuredContent["files_written"] == ["project.yaml"]
        assert yaml.safe_load((config_dir / "project.yaml").read_text()) == {
            "system": {"name": "Renamed"}
        }

    async def test_dry_run_must_be_bool(self, instance):
        result = await _registry().call_tool(
            "config_regenerate_config", {"dry_run": "yes"}, instance
        )
        assert result.isError is True
        assert "dry_run must be a boolean, got str" in _text(result)


class TestRegenerateMappingsTool:
    async def test_new_file_section_mapped(self, instance, config_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        await _registry().call_tool("config_regenerate_snapshot", {}, instance)
        write_yaml(config_dir, "routes.yaml", "routes:\n  home: index\n")

        result = await _registry().call_tool("config_regenerate_mappings", {}, instance)

        assert not result.isError
        assert result.structuredContent["mapping_changed"] is True
        status = await _registry().call_tool("config_status", {}, instance)
        locations = {m["location"] for m in status.structuredContent["mappings"]}
        assert "routes.yaml" in locations


class TestReadTools:
    async def test_status(self, instance, config_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        result = await _registry().call_tool("config_status", {}, instance)
        assert "Snapshot version: 0" in _text(result)
        assert "project.yaml" in _text(result)
        assert result.structuredContent["stale_files"] == ["project.yaml"]

    async def test_get(self, instance, config_dir):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        await _registry().call_tool("config_regenerate_snapshot", {}, instance)

        result = await _registry().call_tool("config_get", {"path": "system"}, instance)
        assert json.loads(_text(result)) == {"name": "Site"}
        assert result.structuredContent == {"path": "system", "value": {"name": "Site"}}

    async def test_get_missing_value(self, instance):
        result = await _registry().call_tool("config_get", {"path": "system.name"}, instance)
        assert result.isError is True
        assert "not_found" in _text(result)

    async def test_get_requires_path(self, instance):
        result = await _registry().call_tool("config_get", {}, instance)
        assert "path is required" in _text(result)

    async def test_get_rejects_bad_path(self, instance):
        result = await _registry().call_tool("config_get", {"path": "a..b"}, instance)
        assert result.isError is True
        assert _text(result).startswith("Error (validation_error)")
