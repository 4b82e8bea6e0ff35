"""Shared fixtures for mcp-dock tests."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mcp_dock.config import AppConfig
from mcp_dock.context import OrchestratorContext
from mcp_dock.ide_config import IdeConfigSync
from mcp_dock.models import CommandResult, HealthCheckSpec, ServerDefinition, StateFile
from mcp_dock.state import StateStore


def http_server(name="svc", args=None, health_check=True, image="example/svc:latest"):
    """Build an http server definition for tests."""
    return ServerDefinition(
        name=name,
        type="http",
        image=image,
        args=list(args) if args is not None else ["--transport", "sse"],
        health_check=HealthCheckSpec(method="tools/list") if health_check else None,
    )


def stdio_server(name="svcio", image="img", args=None, health_check=True):
    """Build a stdio server definition for tests."""
    return ServerDefinition(
        name=name,
        type="stdio",
        image=image,
        args=list(args or []),
        health_check=HealthCheckSpec(method="tools/list") if health_check else None,
    )


@pytest.fixture
def app_config(tmp_path):
    """Configuration rooted in a temporary workspace with instant polling."""
    values = {
        "WORKSPACE_PATH": str(tmp_path),
        "SERVERS_DIR": str(tmp_path / "servers"),
        "ENV_DIR": str(tmp_path / "servers" / "config"),
        "EXAMPLES_DIR": str(tmp_path / "examples"),
        "STATE_FILE": str(tmp_path / "data" / "state.json"),
        "CURSOR_MCP_CONFIG_PATH": str(tmp_path / "ide" / "mcp.json"),
        "LOG_LEVEL": "DEBUG",
    }
    settings = {
        "orchestrator": {
            "docker": {"daemon_start_interval": 0},
            "startup": {"poll_attempts": 10, "poll_interval": 0},
        }
    }
    return AppConfig(values, settings)


@pytest.fixture
def docker():
    """Docker client double where every container operation succeeds."""
    client = MagicMock()
    client.is_installed = AsyncMock(return_value=True)
    client.is_running = AsyncMock(return_value=True)
    client.start_daemon = AsyncMock(return_value=True)
    client.is_image_pulled = AsyncMock(return_value=True)
    client.pull_image = AsyncMock(return_value=True)
    client.is_container_running = AsyncMock(return_value=False)
    client.run_container = AsyncMock(return_value=CommandResult(success=True, output="abc123"))
    client.stop_and_remove = AsyncMock(return_value=True)
    client.print_logs = AsyncMock()
    client.get_logs = AsyncMock(return_value=CommandResult(success=True, output="", stderr=""))
    client.stream_logs = AsyncMock(return_value=True)
    return client


@pytest.fixture
def validator():
    """Health validator double: nothing listens, every probe passes."""
    health = MagicMock()
    health.is_port_open = AsyncMock(return_value=False)
    health.validate = AsyncMock(return_value=True)
    return health


@pytest.fixture
def make_ctx(app_config, docker, validator):
    """Factory for an OrchestratorContext over the test doubles."""

    def factory(definitions, state=None, confirm_answer=True):
        return OrchestratorContext(
            config=app_config,
            definitions=definitions,
            store=StateStore(app_config.state_file),
            docker=docker,
            validator=validator,
            ide=IdeConfigSync(),
            confirm=MagicMock(return_value=confirm_answer),
            port_allocator=MagicMock(return_value=9500),
            state=state or StateFile(),
        )

    return factory
