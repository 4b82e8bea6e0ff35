"""Per-invocation context shared by the orchestrator and command handlers."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .config import AppConfig, load_app_config, load_server_definitions
from .docker_client import DockerClient
from .health import HealthValidator
from .ide_config import IdeConfigSync
from .models import ServerDefinition, StateFile
from .presentation import confirm
from .state import StateStore
from .utils import allocate_free_port

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorContext:
    """
    Everything one command invocation needs.

    Built with ``create()`` at the start of a command and released with
    ``close()`` at the end. ``state`` is the in-memory working copy of the
    state file.
    """

    config: AppConfig
    definitions: List[ServerDefinition]
    store: StateStore
    docker: DockerClient
    validator: HealthValidator
    ide: IdeConfigSync
    confirm: Callable[[str], bool] = confirm
    port_allocator: Callable[[], int] = allocate_free_port
    state: StateFile = field(default_factory=StateFile)

    @classmethod
    def create(
        cls,
        config: Optional[AppConfig] = None,
        config_file: Optional[Path] = None,
    ) -> "OrchestratorContext":
        """
        Resolve configuration and wire up the components.

        Raises:
            ConfigurationError: If no server definitions can be loaded
        """
        config = config or load_app_config(config_file=config_file)
        definitions = load_server_definitions(config)
        settings = config.settings

        docker = DockerClient(
            command_timeout=settings.command_timeout,
            daemon_start_attempts=settings.daemon_start_attempts,
            daemon_start_interval=settings.daemon_start_interval,
        )

        def existing_env_file(name: str) -> Optional[str]:
            path = config.env_file_path(name)
            return str(path.resolve()) if path.exists() else None

        validator = HealthValidator(
            docker,
            port_probe_timeout_ms=settings.port_probe_timeout_ms,
            http_timeout_ms=settings.http_timeout_ms,
            stdio_timeout_ms=settings.stdio_timeout_ms,
            env_file_resolver=existing_env_file,
        )

        logger.debug(f"Loaded {len(definitions)} server definition(s) from {config.servers_dir}")
        return cls(
            config=config,
            definitions=definitions,
            store=StateStore(config.state_file),
            docker=docker,
            validator=validator,
            ide=IdeConfigSync(),
        )

    def close(self) -> None:
        """Drop the per-invocation caches."""
        self.definitions = []
        self.state = StateFile()
        logger.debug("Orchestrator context closed")
