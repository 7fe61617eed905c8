"""Tests for the MCP server module: registry wiring and protocol handlers."""

from unittest.mock import AsyncMock, patch

import pytest

from project_config import __version__
from project_config.mcp import server
from project_config.mcp.server import (
    PING_SPEC,
    build_parser,
    build_registry,
    get_instance,
    get_registry,
    handle_call_tool,
    handle_list_tools,
    run,
    set_instance,
    set_registry,
)
from project_config.mcp.tools import ALL_SPECS


@pytest.fixture
def wired(instance):
    """Install the global instance and an unfiltered registry."""
    set_instance(instance)
    set_registry(build_registry())
    yield instance
    set_instance(None)
    set_registry(None)


class TestAccessors:
    def test_uninitialized_instance(self):
        set_instance(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_instance()

    def test_uninitialized_registry(self):
        set_registry(None)
        with pytest.raises(RuntimeError, match="not initialized"):
            get_registry()


class TestBuildRegistry:
    def test_all_tools_plus_ping(self):
        registry = build_registry()
        assert registry.tool_count() == len(ALL_SPECS) + 1

    def test_permissions_file_filters(self, tmp_path):
        path = tmp_path / "view.permissions"
        path.write_text("CONFIG_VIEW\n")
        names = [t.name for t in build_registry(str(path)).list_tools()]
        assert names == ["ping", "config_status", "config_get"]


class TestHandlers:
    async def test_list_tools(self, wired):
        names = [t.name for t in await handle_list_tools()]
        assert names[0] == PING_SPEC.tool.name
        assert "config_regenerate_snapshot" in names

    async def test_ping(self, wired, config_dir):
        result = await handle_call_tool("ping", None)
        text = result.content[0].text
        assert __version__ in text
        assert str(config_dir) in text

    async def test_unknown_tool(self, wired):
        result = await handle_call_tool("config_delete_everything", {})
        assert result.isError is True
        assert result.content[0].text.startswith("Error (unknown_tool)")

    async def test_filtered_tool_is_unknown(self, wired, tmp_path):
        path = tmp_path / "view.permissions"
        path.write_text("CONFIG_VIEW\n")
        set_registry(build_registry(str(path)))
        result = await handle_call_tool("config_regenerate_snapshot", {})
        assert "unknown_tool" in result.content[0].text


def test_server_name():
    assert server.server.name == "project-config"


class TestRun:
    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.config_dir is None
        assert args.log_file is None
        assert args.debug is False

    def test_only_given_options_are_overrides(self):
        with patch("project_config.mcp.server.main", new_callable=AsyncMock) as mock_main:
            run(["--config-dir", "site/config", "--debug"])
        mock_main.assert_awaited_once_with(
            config_overrides={"config_dir": "site/config", "debug": True}
        )

    def test_startup_failure_exits_1(self):
        failing = AsyncMock(side_effect=RuntimeError("Configuration error"))
        with patch("project_config.mcp.server.main", failing):
            with pytest.raises(SystemExit) as exc_info:
                run([])
        assert exc_info.value.code == 1
