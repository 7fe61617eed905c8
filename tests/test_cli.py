"""Tests for the project-config command-line interface."""

import json
from unittest.mock import patch

import pytest
import yaml

from conftest import write_yaml
from project_config.cli import build_parser, main


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run the CLI from tmp_path with access granted and logging left alone."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROJECT_CONFIG_ADMIN", "true")
    monkeypatch.setenv("PROJECT_CONFIG_ELEVATED", "true")
    with (
        patch("project_config.cli.load_dotenv"),
        patch("project_config.cli.setup_logging"),
    ):
        yield tmp_path


def _run(config_dir, state_dir, *args):
    return main(["--config-dir", str(config_dir), "--state-dir", str(state_dir), *args])


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_regenerate_config_flags(self):
        args = build_parser().parse_args(["regenerate-config", "--dry-run", "--json"])
        assert args.command == "regenerate-config"
        assert args.dry_run is True
        assert args.json is True


class TestRegenerateSnapshot:
    def test_applies_files_and_persists_live(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        assert _run(config_dir, state_dir, "regenerate-snapshot") == 0

        out = capsys.readouterr().out
        assert "+ system = {'name': 'Site'}" in out
        runtime = json.loads((state_dir / "runtime.json").read_text())
        assert runtime == {"system": {"name": "Site"}}

    def test_second_run_is_up_to_date(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        _run(config_dir, state_dir, "regenerate-snapshot")
        capsys.readouterr()

        assert _run(config_dir, state_dir, "regenerate-snapshot") == 0
        assert "Already up to date." in capsys.readouterr().out

    def test_json_output(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        assert _run(config_dir, state_dir, "regenerate-snapshot", "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["operation"] == "snapshot"
        assert data["counts"]["added"] == 1

    def test_access_denied(self, cli_env, config_dir, state_dir, monkeypatch, capsys):
        monkeypatch.setenv("PROJECT_CONFIG_ELEVATED", "false")
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        assert _run(config_dir, state_dir, "regenerate-snapshot") == 1
        assert "Not allowed" in capsys.readouterr().err
        assert not (state_dir / "runtime.json").exists()

    def test_parse_error(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system: [unclosed\n")
        assert _run(config_dir, state_dir, "regenerate-snapshot") == 1
        assert "Failed to parse project.yaml" in capsys.readouterr().err


class TestRegenerateConfig:
    def _seed(self, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        _run(config_dir, state_dir, "regenerate-snapshot")
        runtime = state_dir / "runtime.json"
        runtime.write_text(json.dumps({"system": {"name": "Renamed"}}))
        capsys.readouterr()

    def test_writes_live_changes(self, cli_env, config_dir, state_dir, capsys):
        self._seed(config_dir, state_dir, capsys)
        assert _run(config_dir, state_dir, "regenerate-config") == 0
        assert "system.name: 'Site' -> 'Renamed'" in capsys.readouterr().out
        data = yaml.safe_load((config_dir / "project.yaml").read_text())
        assert data == {"system": {"name": "Renamed"}}

    def test_dry_run_writes_nothing(self, cli_env, config_dir, state_dir, capsys):
        self._seed(config_dir, state_dir, capsys)
        before = (config_dir / "project.yaml").read_text()
        assert _run(config_dir, state_dir, "regenerate-config", "--dry-run") == 0
        out = capsys.readouterr().out
        assert "[WRITE] project.yaml" in out
        assert (config_dir / "project.yaml").read_text() == before


class TestQueries:
    def test_status(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        _run(config_dir, state_dir, "regenerate-snapshot")
        capsys.readouterr()

        assert _run(config_dir, state_dir, "status", "--json") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["snapshot_version"] == 1
        assert status["sections"] == ["system"]
        assert status["stale_files"] == []

    def test_status_text(self, cli_env, config_dir, state_dir, capsys):
        assert _run(config_dir, state_dir, "status") == 0
        out = capsys.readouterr().out
        assert "Snapshot version: 0" in out
        assert "Updated at:       never" in out

    def test_get(self, cli_env, config_dir, state_dir, capsys):
        write_yaml(config_dir, "project.yaml", "system:\n  name: Site\n")
        _run(config_dir, state_dir, "regenerate-snapshot")
        capsys.readouterr()

        assert _run(config_dir, state_dir, "get", "system.name") == 0
        assert capsys.readouterr().out.strip() == '"Site"'
        assert _run(config_dir, state_dir, "get", "system.missing") == 1
        assert _run(config_dir, state_dir, "get", "system..name") == 2


class TestSetup:
    def test_same_dirs_is_configuration_error(self, cli_env, config_dir, capsys):
        assert _run(config_dir, config_dir, "status") == 2
        assert "Configuration error" in capsys.readouterr().err

    def test_init(self, cli_env, capsys):
        assert main(["--config-dir", "site-config", "init"]) == 0
        assert (cli_env / ".project_config" / "settings.yml").exists()
        assert (cli_env / "site-config").is_dir()
        assert "Settings:" in capsys.readouterr().out
