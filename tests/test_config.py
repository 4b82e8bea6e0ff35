"""Tests for configuration loading and server definitions."""

import os
from unittest.mock import patch

import pytest

from conftest import http_server

from mcp_dock.config import (
    AppConfig,
    Settings,
    discover_ide_clients,
    filter_enabled_servers,
    load_app_config,
    load_server_definitions,
    parse_server_definition,
    select_servers,
)
from mcp_dock.exceptions import ConfigurationError, ServerNotFoundError


class TestAppConfig:
    """Tests for layered configuration"""

    def test_defaults_from_workspace(self, tmp_path):
        config = load_app_config(workspace=tmp_path, environ={"HOME": str(tmp_path)})

        assert config.servers_dir == tmp_path / "servers"
        assert config.env_dir == tmp_path / "servers" / "config"
        assert config.state_file == tmp_path / "data" / "state.json"
        assert config.cursor_mcp_config_path == tmp_path / ".cursor" / "mcp.json"
        assert config.log_level == "INFO"
        assert config.enabled_servers == []

    def test_precedence(self, tmp_path):
        env_dir = tmp_path / "servers" / "config"
        env_dir.mkdir(parents=True)
        (env_dir / "main.env").write_text("LOG_LEVEL=warning\nENABLED_SERVERS=a,b\nSTATE_FILE=\n")
        extra = tmp_path / "extra.env"
        extra.write_text("ENABLED_SERVERS=c\n")

        config = load_app_config(
            workspace=tmp_path,
            config_file=extra,
            overrides={"STATE_FILE": str(tmp_path / "override.json")},
            environ={"HOME": str(tmp_path), "LOG_LEVEL": "DEBUG", "ENABLED_SERVERS": "x"},
        )

        assert config.log_level == "WARNING"
        assert config.enabled_servers == ["c"]
        assert config.state_file == tmp_path / "override.json"

    def test_environment_is_not_mutated(self, tmp_path):
        env_dir = tmp_path / "servers" / "config"
        env_dir.mkdir(parents=True)
        (env_dir / "main.env").write_text("MCP_DOCK_TEST_ONLY_KEY=1\n")

        config = load_app_config(workspace=tmp_path, environ={"HOME": str(tmp_path)})

        assert config["MCP_DOCK_TEST_ONLY_KEY"] == "1"
        assert "MCP_DOCK_TEST_ONLY_KEY" not in os.environ

    def test_is_read_only(self):
        config = AppConfig({"WORKSPACE_PATH": "/w"})
        with pytest.raises(TypeError):
            config["WORKSPACE_PATH"] = "/other"

    def test_settings_file(self, tmp_path):
        settings = tmp_path / "settings.yaml"
        settings.write_text("orchestrator:\n  startup:\n    poll_attempts: 3\n  health:\n    http_timeout_ms: 100\n")

        config = load_app_config(
            workspace=tmp_path,
            environ={"HOME": str(tmp_path), "MCP_DOCK_SETTINGS": str(settings)},
        )

        assert config.settings.poll_attempts == 3
        assert config.settings.http_timeout_ms == 100
        assert config.settings.stdio_timeout_ms == 10000

    def test_settings_defaults(self):
        settings = Settings.from_dict({})
        assert settings.port_probe_timeout_ms == 2000
        assert settings.poll_attempts == 10
        assert settings.poll_interval == 1.0

    def test_env_file_paths(self, app_config, tmp_path):
        assert app_config.env_file_path("svc") == tmp_path / "servers" / "config" / "svc.env"
        assert app_config.env_example_path("svc") == tmp_path / "examples" / "svc.env.example"
        assert app_config.generic_env_example_path() == tmp_path / "examples" / "mcp-generic.env.example"


class TestDiscoverIdeClients:
    """Tests for IDE client discovery"""

    @patch("mcp_dock.config.platform.system", return_value="Darwin")
    def test_macos_includes_claude(self, _mock_system):
        clients = {c.name: c.path for c in discover_ide_clients({"HOME": "/home/u"})}
        assert clients["Cursor"] == os.path.join("/home/u", ".cursor", "mcp.json")
        assert clients["Claude"].endswith(os.path.join("Claude", "claude_desktop_config.json"))

    @patch("mcp_dock.config.platform.system", return_value="Linux")
    def test_linux_has_no_claude(self, _mock_system):
        names = [c.name for c in discover_ide_clients({"HOME": "/home/u"})]
        assert names == ["Windsurf", "Cursor"]


class TestServerDefinitions:
    """Tests for loading declarative server definitions"""

    def write(self, directory, name, body):
        directory.mkdir(parents=True, exist_ok=True)
        (directory / name).write_text(body)

    def test_parse_full_definition(self):
        server = parse_server_definition(
            "svc",
            {
                "type": "http",
                "image": "example/svc:1",
                "args": ["--transport", "sse", 9001],
                "description": "Example",
                "healthValidator": {"method": "tools/list", "responseContains": "tools"},
                "post_start_instructions": "Try using list tools",
            },
        )
        assert server.args == ["--transport", "sse", "9001"]
        assert server.health_check.method == "tools/list"
        assert server.health_check.response_contains == "tools"
        assert server.description == "Example"

    def test_parse_requires_type_and_image(self):
        with pytest.raises(ValueError):
            parse_server_definition("svc", {"image": "x"})
        with pytest.raises(ValueError):
            parse_server_definition("svc", {"type": "http"})
        with pytest.raises(ValueError):
            parse_server_definition("svc", {"type": "grpc", "image": "x"})

    def test_description_defaults_to_name(self):
        assert parse_server_definition("svc", {"type": "stdio", "image": "x"}).description == "svc"

    def test_load_skips_examples_and_invalid(self, app_config):
        servers_dir = app_config.servers_dir
        self.write(servers_dir, "a.yaml", "type: http\nimage: a\n")
        self.write(servers_dir, "b.yml", "type: stdio\nimage: b\n")
        self.write(servers_dir, "c.example.yaml", "type: http\nimage: c\n")
        self.write(servers_dir, "d.yaml", "type: http\n")
        self.write(servers_dir, "e.yaml", "type: [unclosed\n")
        self.write(servers_dir, "notes.txt", "ignored")

        definitions = load_server_definitions(app_config)

        assert [d.name for d in definitions] == ["a", "b"]

    def test_missing_directory_raises(self, app_config):
        with pytest.raises(ConfigurationError):
            load_server_definitions(app_config)

    def test_no_valid_definitions_raises(self, app_config):
        self.write(app_config.servers_dir, "d.yaml", "image: only\n")
        with pytest.raises(ConfigurationError):
            load_server_definitions(app_config)

    def test_enabled_servers_filter(self):
        definitions = [http_server("a"), http_server("b"), http_server("c")]
        assert [d.name for d in filter_enabled_servers(definitions, ["a", "c"])] == ["a", "c"]
        assert filter_enabled_servers(definitions, []) == definitions

    def test_select_servers(self):
        definitions = [http_server("a"), http_server("b")]
        assert select_servers(definitions) == definitions
        assert [d.name for d in select_servers(definitions, "b")] == ["b"]

    def test_select_unknown_server_raises(self):
        with pytest.raises(ServerNotFoundError) as exc_info:
            select_servers([http_server("a"), http_server("b")], "zzz")
        assert "Available servers: a, b" in str(exc_info.value)
