"""
Server lifecycle orchestration.

The ``Orchestrator`` drives the docker client, health validator, state store
and IDE config sync through start, stop, health-check, status and update for
one server at a time. Every public per-server operation returns a bool and
never raises.
"""

import asyncio
import logging
from typing import List, Optional

from .context import OrchestratorContext
from .models import ContainerSpec, IdeEntry, PortMapping, ServerDefinition
from .presentation import display_ide_config, suggest_env_file_creation
from .state import get_by_name, update_consent, update_status
from .utils import (
    DEFAULT_HTTP_PORT,
    find_port_in_args,
    http_endpoint,
    port_from_endpoint,
    stdio_endpoint,
)

logger = logging.getLogger(__name__)

LOCALHOST = "localhost"


class Orchestrator:
    """Per-server lifecycle operations over an ``OrchestratorContext``."""

    def __init__(self, ctx: OrchestratorContext):
        self.ctx = ctx
        self.settings = ctx.config.settings

    # Shared helpers

    async def check_docker_availability(self) -> bool:
        """
        Make sure docker is installed and its daemon is running.

        Tries to start the daemon when it is not running.
        """
        docker = self.ctx.docker
        if not await docker.is_installed():
            logger.error("Docker is not installed. Please install Docker to use this command.")
            return False

        if await docker.is_running():
            return True

        if not await docker.start_daemon():
            logger.error("Could not start Docker. Please start Docker manually and try again.")
            return False

        logger.info("Docker started successfully.")
        return True

    def resolve_port(self, server: ServerDefinition) -> int:
        """
        Port an http server listens on.

        Uses the ``--port`` arg when present. Otherwise a free port is
        allocated and appended to ``server.args``, so later calls in this
        process see the same port.
        """
        port = find_port_in_args(server.args)
        if port is not None:
            return port

        port = self.ctx.port_allocator()
        server.args.extend(["--port", str(port)])
        logger.info(f"No port specified for {server.name}, dynamically assigned port {port}")
        return port

    def known_port(self, server: ServerDefinition) -> Optional[int]:
        """Port from the recorded endpoint, then from the args. Never allocates."""
        state = get_by_name(self.ctx.state, server.name)
        if state is not None:
            port = port_from_endpoint(state.endpoint)
            if port is not None:
                return port
        return find_port_in_args(server.args)

    def env_file_for(self, server: ServerDefinition) -> Optional[str]:
        """Absolute env file path of a server, or None when it does not exist."""
        path = self.ctx.config.env_file_path(server.name)
        return str(path.resolve()) if path.exists() else None

    def check_env_file(self, server: ServerDefinition) -> bool:
        """Report whether the env file exists, suggesting how to create it if not."""
        if self.env_file_for(server):
            return True

        logger.warning(
            f"Environment file for {server.name} not found, continuing without one"
        )
        suggest_env_file_creation(self.ctx.config, server)
        return False

    def _record(self, name: str, online: bool, endpoint: Optional[str] = None) -> None:
        self.ctx.state = update_status(self.ctx.state, name, online, endpoint)
        self.ctx.store.save(self.ctx.state)
        if endpoint:
            logger.debug(f"Updated state for {name}: online={online}, endpoint={endpoint}")
        else:
            logger.debug(f"Updated state: {name} {'online' if online else 'offline'}")

    # Start

    async def start_server(self, server: ServerDefinition) -> bool:
        """
        Start an http server or validate a stdio one.

        On success the IDE config entry is offered for update and the
        server's post-start instructions are shown.
        """
        logger.info(f"Starting {server.description} ({server.name})...")
        try:
            self.check_env_file(server)

            if not await self.ctx.docker.is_image_pulled(server.image):
                if not await self.ctx.docker.pull_image(server.image):
                    logger.error(f"Failed to pull Docker image for {server.name}. Aborting.")
                    return False

            if server.is_http:
                success = await self._start_http(server)
            else:
                success = await self._validate_stdio(server)

            if success:
                await self.update_ide_config_for_server(server)
                if server.post_start_instructions:
                    logger.info(server.post_start_instructions)
            return success
        except Exception as e:
            logger.error(f"Error starting {server.name}: {e}", exc_info=True)
            return False

    async def _check_health(self, server: ServerDefinition, port: int) -> bool:
        healthy = await self.ctx.validator.validate(server, port=port)
        if healthy:
            logger.info(f"Health check passed for {server.name} at port {port}")
        else:
            logger.error(f"Health check failed for {server.name}")
        return healthy

    async def _succeed_http(self, server: ServerDefinition, port: int) -> bool:
        self._record(server.name, True, http_endpoint(port))
        logger.info(f"{server.name} started successfully and is healthy!")
        return True

    async def _fail_http(self, server: ServerDefinition, message: str) -> bool:
        logger.info("Retrieving logs for troubleshooting:")
        await self.ctx.docker.print_logs(server.name)
        await self.ctx.docker.stop_and_remove(server.name)
        logger.error(f"{server.name}: {message}")
        self._record(server.name, False)
        return False

    async def _start_http(self, server: ServerDefinition) -> bool:
        port = self.resolve_port(server)
        validator = self.ctx.validator

        if await validator.is_port_open(LOCALHOST, port):
            logger.info(f"Server already running on port {port}")
            if await self._check_health(server, port):
                return await self._succeed_http(server, port)
            logger.error(
                f"{server.name}: a different server appears to be running on port {port}"
            )
            return False

        if await self.ctx.docker.is_container_running(server.name):
            logger.info(f"Container {server.name} is already running.")
            if await self._check_health(server, port):
                return await self._succeed_http(server, port)
            self._record(server.name, False)
            return False

        await self.ctx.docker.stop_and_remove(server.name)

        spec = ContainerSpec(
            image=server.image,
            name=server.name,
            args=server.args,
            env_file=self.env_file_for(server),
            ports=[PortMapping(host_port=port, container_port=port)],
            detached=True,
        )
        result = await self.ctx.docker.run_container(spec)
        if not result.success:
            return await self._fail_http(server, f"failed to start container: {result.error}")

        logger.info(f"Started {server.name} container. Waiting for server to initialize...")

        attempts = self.settings.poll_attempts
        for attempt in range(attempts):
            await asyncio.sleep(self.settings.poll_interval)
            if await validator.is_port_open(LOCALHOST, port):
                break
            logger.debug(f"Waiting for server (attempt {attempt + 1}/{attempts})...")
        else:
            return await self._fail_http(
                server, "server did not become available within the timeout period"
            )

        if not await self._check_health(server, port):
            return await self._fail_http(server, "health check failed")

        return await self._succeed_http(server, port)

    async def _validate_stdio(self, server: ServerDefinition) -> bool:
        logger.info(f"Validating {server.name} STDIO server...")

        if not await self.ctx.validator.validate(server):
            logger.error(f"Validation failed for {server.name}")
            self._record(server.name, False)
            return False

        self._record(server.name, False, stdio_endpoint(server.image))
        logger.info(f"{server.name} validation successful!")
        logger.info(
            "NOTE: STDIO servers run on-demand when called from the IDE. "
            "No persistent container is needed."
        )
        return True

    # Stop

    async def stop_server(self, server: ServerDefinition) -> bool:
        """Stop and remove an http server's container. A no-op for stdio."""
        try:
            logger.info(f"Stopping {server.description} ({server.name})...")

            if server.is_stdio:
                logger.info(f"{server.name} is a STDIO server and does not need to be stopped.")
                return True

            if not await self.ctx.docker.stop_and_remove(server.name):
                logger.error(f"Failed to stop {server.name}")
                return False

            self._record(server.name, False)
            logger.info(f"{server.name} stopped successfully.")
            return True
        except Exception as e:
            logger.error(f"Error stopping {server.name}: {e}", exc_info=True)
            return False

    def may_manage_ide_entry(self, server: ServerDefinition) -> bool:
        """True only when the user previously agreed to IDE config management."""
        state = get_by_name(self.ctx.state, server.name)
        consent = state.manage_cursor_config if state else None
        if consent is True:
            return True
        if consent is False:
            logger.debug(f"Skipping IDE config update for {server.name} (user previously declined)")
        else:
            logger.debug(f"Skipping IDE config update for {server.name} (user was never asked)")
        return False

    def remove_ide_entries(self, names: List[str]) -> bool:
        """Remove entries from the IDE config in one write."""
        path = self.ctx.config.cursor_mcp_config_path
        if not names:
            return True
        if path is None:
            logger.debug("No IDE MCP config path configured, skipping removal")
            return True

        if self.ctx.ide.remove(path, names):
            logger.info(f"Removed {len(names)} server(s) from IDE MCP config: {', '.join(names)}")
            return True

        logger.error("Failed to remove servers from IDE MCP config")
        return False

    # Health check, status and update

    async def health_check(self, server: ServerDefinition) -> bool:
        """Run a server's health probe against wherever it is recorded to run."""
        try:
            logger.info(f"Performing health check for {server.description} ({server.name})...")

            if server.is_http and not await self.ctx.docker.is_container_running(server.name):
                logger.warning(f"Container {server.name} is not running")

            port = self.known_port(server) if server.is_http else None
            healthy = await self.ctx.validator.validate(server, port=port)
            if healthy:
                logger.info(f"Health check passed for {server.name}")
            else:
                logger.error(f"Health check failed for {server.name}")
            return healthy
        except Exception as e:
            logger.error(f"Error performing health check for {server.name}: {e}", exc_info=True)
            return False

    async def is_server_running(self, server: ServerDefinition) -> bool:
        """
        Whether an http server is up. Stdio servers always report False.

        Checks the named container first, then the recorded or configured
        port. Never allocates a port.
        """
        try:
            if server.is_stdio:
                return False

            if await self.ctx.docker.is_container_running(server.name):
                return True

            port = self.known_port(server)
            if port is None:
                logger.debug(f"Could not determine port for {server.name}, can't check if it's running")
                return False
            return await self.ctx.validator.is_port_open(LOCALHOST, port)
        except Exception as e:
            logger.error(f"Error checking if {server.name} is running: {e}", exc_info=True)
            return False

    async def update_server_image(self, server: ServerDefinition) -> bool:
        try:
            logger.info(f"Updating Docker image for {server.description} ({server.name})...")
            if not await self.ctx.docker.pull_image(server.image):
                logger.error(f"Failed to update image for {server.name}")
                return False
            logger.info(f"Successfully updated image for {server.name}")
            return True
        except Exception as e:
            logger.error(f"Error updating image for {server.name}: {e}", exc_info=True)
            return False

    # IDE config

    def build_ide_entry(self, server: ServerDefinition) -> IdeEntry:
        """
        IDE config entry for a server.

        http servers point at the recorded endpoint, or at the configured
        port (9000 by default). stdio servers wrap a ``docker run -i``.
        """
        if server.is_http:
            state = get_by_name(self.ctx.state, server.name)
            if state is not None and state.endpoint.startswith("http://"):
                return {"url": state.endpoint}
            return {"url": http_endpoint(find_port_in_args(server.args) or DEFAULT_HTTP_PORT)}

        env_file = str(self.ctx.config.env_file_path(server.name).resolve())
        return {
            "command": "docker",
            "args": ["run", "-i", "--rm", "--env-file", env_file, server.image, *server.args],
        }

    async def update_ide_config_for_server(self, server: ServerDefinition, force: bool = False) -> bool:
        """
        Bring the server's IDE config entry up to date.

        Unchanged entries are left alone. Unless ``force`` is set the user is
        asked first, and an accepted write is remembered as consent. A
        decline is not remembered.

        Returns:
            False only if writing the IDE config failed
        """
        path = self.ctx.config.cursor_mcp_config_path
        if path is None:
            logger.debug("IDE MCP config path not configured, skipping config update")
            return True

        entry = self.build_ide_entry(server)
        try:
            current = self.ctx.ide.get_servers(path)
            in_config = server.name in current
            if in_config and current[server.name] == entry:
                logger.debug(f"IDE config for {server.name} is already up-to-date, no update needed")
                return True

            should_update = force
            if not force:
                action = "update" if in_config else "add"
                should_update = self.ctx.confirm(
                    f"Would you like to automatically {action} {server.description} "
                    f"({server.name}) in your IDE MCP config at {path}?"
                )

            if not should_update:
                logger.info("Manual configuration required:")
                display_ide_config(server, entry, configured=False)
                return True

            if not self.ctx.ide.add_or_update(path, {server.name: entry}):
                logger.error(f"Failed to update IDE config for {server.name}")
                display_ide_config(server, entry, configured=False)
                return False

            logger.info(
                f"Successfully {'updated' if in_config else 'added'} {server.name} "
                f"in your IDE MCP config at {path}"
            )
            if not force:
                self.ctx.state = update_consent(
                    self.ctx.state, server.name, True, self.env_file_for(server)
                )
                self.ctx.store.save(self.ctx.state)
            display_ide_config(server, entry, configured=True)
            return True
        except Exception as e:
            logger.error(f"Error updating IDE config for {server.name}: {e}", exc_info=True)
            display_ide_config(server, entry, configured=False)
            return False
