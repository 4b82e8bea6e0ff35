"""
Configuration loading for mcp-dock.

Application settings are resolved once from several optional sources and
frozen into an ``AppConfig``. Sources, from lowest to highest precedence:

1. Built-in defaults (workspace layout, discovered IDE config paths)
2. Process environment variables for the known keys
3. ``<ENV_DIR>/main.env``
4. The env file given with ``--config``
5. Explicit overrides

Server definitions are declarative YAML files, one per server, under
``<SERVERS_DIR>``.
"""

import logging
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .exceptions import ConfigurationError, ServerNotFoundError
from .models import HealthCheckSpec, ServerDefinition

logger = logging.getLogger(__name__)

KNOWN_KEYS = (
    "WORKSPACE_PATH",
    "SERVERS_DIR",
    "ENV_DIR",
    "EXAMPLES_DIR",
    "STATE_FILE",
    "SETTINGS_FILE",
    "ENABLED_SERVERS",
    "CURSOR_MCP_CONFIG_PATH",
    "WINDSURF_MCP_CONFIG_PATH",
    "CLAUDE_MCP_CONFIG_PATH",
    "LOG_LEVEL",
)

GENERIC_ENV_EXAMPLE = "mcp-generic.env.example"


@dataclass(frozen=True)
class IdeClient:
    """An MCP-capable desktop client and the path of its MCP config file."""

    name: str
    path: str
    description: str


def discover_ide_clients(environ: Optional[Mapping[str, str]] = None) -> List[IdeClient]:
    """Return the known IDE clients whose config path resolves on this platform."""
    env = os.environ if environ is None else environ
    home = env.get("HOME") or env.get("USERPROFILE") or str(Path.home())
    system = platform.system()

    clients = [
        IdeClient("Windsurf", str(Path(home) / ".codeium" / "windsurf" / "mcp_config.json"), "Codeium Windsurf client"),
        IdeClient("Cursor", str(Path(home) / ".cursor" / "mcp.json"), "Cursor client"),
    ]

    if system == "Windows":
        app_data = env.get("APPDATA", "")
        clients.append(
            IdeClient("Claude", str(Path(app_data) / "Claude" / "claude_desktop_config.json"), "Claude desktop client")
        )
    elif system == "Darwin":
        clients.append(
            IdeClient(
                "Claude",
                str(Path(home) / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"),
                "Claude desktop client",
            )
        )
    # Claude desktop has no config location on other platforms

    return clients


def _default_values(workspace: Path, environ: Mapping[str, str]) -> Dict[str, str]:
    clients = {client.name: client.path for client in discover_ide_clients(environ)}
    return {
        "WORKSPACE_PATH": str(workspace),
        "SERVERS_DIR": str(workspace / "servers"),
        "ENV_DIR": str(workspace / "servers" / "config"),
        "EXAMPLES_DIR": str(workspace / "examples"),
        "STATE_FILE": str(workspace / "data" / "state.json"),
        "SETTINGS_FILE": str(workspace / "config" / "config.yaml"),
        "CURSOR_MCP_CONFIG_PATH": clients.get("Cursor", ""),
        "WINDSURF_MCP_CONFIG_PATH": clients.get("Windsurf", ""),
        "CLAUDE_MCP_CONFIG_PATH": clients.get("Claude", ""),
        "LOG_LEVEL": "INFO",
    }


def load_env_file(path: Path) -> Dict[str, str]:
    """Read an env file, dropping empty values so they never shadow lower layers."""
    if not path.exists():
        return {}
    try:
        logger.debug(f"Loading environment from {path}")
        values = dotenv_values(path)
    except Exception as e:
        logger.warning(f"Error loading env file from {path}: {e}")
        return {}
    return {key: value for key, value in values.items() if value}


class AppConfig(Mapping[str, str]):
    """Immutable application configuration."""

    def __init__(self, values: Mapping[str, str], settings: Optional[Dict[str, Any]] = None):
        self._values = dict(values)
        self.settings = Settings.from_dict(settings or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"AppConfig({self._values!r})"

    @property
    def workspace_path(self) -> Path:
        return Path(self._values["WORKSPACE_PATH"])

    @property
    def servers_dir(self) -> Path:
        return Path(self._values["SERVERS_DIR"])

    @property
    def env_dir(self) -> Path:
        return Path(self._values["ENV_DIR"])

    @property
    def examples_dir(self) -> Path:
        return Path(self._values["EXAMPLES_DIR"])

    @property
    def state_file(self) -> Path:
        return Path(self._values["STATE_FILE"])

    @property
    def cursor_mcp_config_path(self) -> Optional[Path]:
        value = self._values.get("CURSOR_MCP_CONFIG_PATH", "")
        return Path(value) if value else None

    @property
    def enabled_servers(self) -> List[str]:
        raw = self._values.get("ENABLED_SERVERS", "")
        return [name.strip() for name in raw.split(",") if name.strip()]

    @property
    def log_level(self) -> str:
        return self._values.get("LOG_LEVEL", "INFO").upper()

    def env_file_path(self, server_name: str) -> Path:
        """Path of the env file holding a server's container environment."""
        return self.env_dir / f"{server_name}.env"

    def env_example_path(self, server_name: str) -> Path:
        return self.examples_dir / f"{server_name}.env.example"

    def generic_env_example_path(self) -> Path:
        return self.examples_dir / GENERIC_ENV_EXAMPLE


@dataclass(frozen=True)
class Settings:
    """Orchestrator timings, read from the optional YAML settings file."""

    command_timeout: float = 60
    daemon_start_attempts: int = 30
    daemon_start_interval: float = 2
    port_probe_timeout_ms: int = 2000
    http_timeout_ms: int = 5000
    stdio_timeout_ms: int = 10000
    poll_attempts: int = 10
    poll_interval: float = 1.0

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Settings":
        orchestrator = config.get("orchestrator", {}) or {}
        docker_config = orchestrator.get("docker", {}) or {}
        health_config = orchestrator.get("health", {}) or {}
        startup_config = orchestrator.get("startup", {}) or {}
        defaults = cls()
        return cls(
            command_timeout=docker_config.get("command_timeout", defaults.command_timeout),
            daemon_start_attempts=docker_config.get("daemon_start_attempts", defaults.daemon_start_attempts),
            daemon_start_interval=docker_config.get("daemon_start_interval", defaults.daemon_start_interval),
            port_probe_timeout_ms=health_config.get("port_probe_timeout_ms", defaults.port_probe_timeout_ms),
            http_timeout_ms=health_config.get("http_timeout_ms", defaults.http_timeout_ms),
            stdio_timeout_ms=health_config.get("stdio_timeout_ms", defaults.stdio_timeout_ms),
            poll_attempts=startup_config.get("poll_attempts", defaults.poll_attempts),
            poll_interval=startup_config.get("poll_interval", defaults.poll_interval),
        )


def load_settings(settings_path: Path) -> Dict[str, Any]:
    """Load orchestrator settings from a YAML file."""
    try:
        with open(settings_path, "r") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Settings file {settings_path} not found, using defaults")
        return {}
    except Exception as e:
        logger.error(f"Error loading settings: {e}")
        return {}


def load_app_config(
    workspace: Optional[Path] = None,
    config_file: Optional[Path] = None,
    overrides: Optional[Mapping[str, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Resolve the application configuration from all sources.

    Args:
        workspace: Workspace root (defaults to the current directory)
        config_file: Extra env file passed with ``--config``
        overrides: Highest-precedence values
        environ: Environment to read (defaults to ``os.environ``)

    Returns:
        Frozen AppConfig
    """
    env = os.environ if environ is None else environ
    overrides = dict(overrides or {})
    workspace = Path(overrides.get("WORKSPACE_PATH") or env.get("WORKSPACE_PATH") or workspace or Path.cwd())

    values = _default_values(workspace, env)
    values.update({key: env[key] for key in KNOWN_KEYS if env.get(key)})
    values["WORKSPACE_PATH"] = str(workspace)

    env_dir = Path(overrides.get("ENV_DIR") or values["ENV_DIR"])
    values.update(load_env_file(env_dir / "main.env"))

    if config_file is not None:
        if not config_file.exists():
            logger.warning(f"Config file {config_file} not found, ignoring")
        values.update(load_env_file(config_file))

    values.update({key: value for key, value in overrides.items() if value is not None})

    settings_path = Path(env.get("MCP_DOCK_SETTINGS") or values["SETTINGS_FILE"])
    settings = load_settings(settings_path)

    logger.debug("Configuration initialized successfully")
    return AppConfig(values, settings)


def parse_server_definition(name: str, data: Dict[str, Any]) -> ServerDefinition:
    """
    Build a ServerDefinition from one YAML document.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    if not isinstance(data, dict):
        raise ValueError("definition must be a mapping")
    if "type" not in data:
        raise ValueError(f"Server '{name}' missing required 'type' field")
    if "image" not in data:
        raise ValueError(f"Server '{name}' missing required 'image' field")

    raw_args = data.get("args") or []
    if not isinstance(raw_args, list):
        raise ValueError(f"Server '{name}' field 'args' must be a list")

    health_data = data.get("health_check", data.get("healthValidator"))
    health_check = HealthCheckSpec.from_dict(health_data) if health_data else None

    return ServerDefinition(
        name=str(data.get("name") or name),
        type=data["type"],
        image=str(data["image"]),
        args=[str(arg) for arg in raw_args],
        description=str(data.get("description") or ""),
        health_check=health_check,
        post_start_instructions=data.get("post_start_instructions", data.get("postStartInstructions")),
    )


def filter_enabled_servers(
    definitions: List[ServerDefinition], enabled: List[str]
) -> List[ServerDefinition]:
    """Apply the ENABLED_SERVERS allow-list; an empty list enables everything."""
    if not enabled:
        logger.debug("No ENABLED_SERVERS filter specified - all servers are enabled")
        return definitions

    logger.info(f"Filtering servers based on ENABLED_SERVERS: {', '.join(enabled)}")
    filtered = [d for d in definitions if d.name in enabled]
    disabled = [d.name for d in definitions if d.name not in enabled]
    if disabled:
        logger.info(f"The following servers are disabled: {', '.join(disabled)}")
    return filtered


def load_server_definitions(config: AppConfig) -> List[ServerDefinition]:
    """
    Load every server definition under the servers directory.

    Args:
        config: Application configuration

    Returns:
        Enabled server definitions, sorted by name

    Raises:
        ConfigurationError: If the directory is missing or holds no valid definition
    """
    servers_dir = config.servers_dir
    if not servers_dir.is_dir():
        raise ConfigurationError(
            "server definitions", reason=f"directory {servers_dir} does not exist"
        )

    logger.debug(f"Scanning for server definitions in {servers_dir}")
    definitions: List[ServerDefinition] = []
    for path in sorted(servers_dir.iterdir()):
        if not path.is_file() or path.suffix not in (".yaml", ".yml") or ".example" in path.name:
            continue
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
            definitions.append(parse_server_definition(path.stem, data))
            logger.debug(f"Loaded server definition {path.stem}")
        except (yaml.YAMLError, ValueError, TypeError) as e:
            logger.error(f"Error loading server definition {path.name}: {e}")

    if not definitions:
        raise ConfigurationError(
            "server definitions", reason=f"no valid server definitions found in {servers_dir}"
        )

    return filter_enabled_servers(definitions, config.enabled_servers)


def select_servers(
    definitions: List[ServerDefinition], server_name: Optional[str] = None
) -> List[ServerDefinition]:
    """
    Narrow the definitions to the one requested with ``--server``.

    Raises:
        ServerNotFoundError: If the requested server is unknown or disabled
    """
    if not server_name:
        return definitions
    selected = [d for d in definitions if d.name == server_name]
    if not selected:
        raise ServerNotFoundError(server_name, available=[d.name for d in definitions])
    return selected
