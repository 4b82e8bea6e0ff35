"""Docker CLI client."""

import asyncio
import logging
import platform
from typing import Callable, List, Optional

from .exceptions import CommandError, McpDockError
from .models import CommandResult, ContainerSpec
from .utils import run_command

logger = logging.getLogger(__name__)

LOG_TAIL_LINES = 100


class DockerClient:
    """
    Async wrapper over the ``docker`` CLI.

    Every public method collapses failures into ``False`` or a failed
    ``CommandResult``; nothing raises past this class.
    """

    def __init__(
        self,
        command_timeout: float = 60,
        daemon_start_attempts: int = 30,
        daemon_start_interval: float = 2,
    ):
        """
        Initialize Docker client.

        Args:
            command_timeout: Command timeout in seconds
            daemon_start_attempts: Polls while waiting for a freshly started daemon
            daemon_start_interval: Seconds between those polls
        """
        self.command_timeout = command_timeout
        self.daemon_start_attempts = daemon_start_attempts
        self.daemon_start_interval = daemon_start_interval

    async def _run(self, cmd: List[str], timeout: Optional[float] = None, input: Optional[str] = None):
        """
        Run a command, raising CommandError on a non-zero exit.

        Returns:
            Tuple of (stdout, stderr)
        """
        stdout, stderr, return_code = await run_command(
            cmd, timeout=timeout or self.command_timeout, input=input
        )
        if return_code != 0:
            raise CommandError(cmd, return_code, stderr=stderr.strip() or stdout.strip() or None)
        return stdout, stderr

    async def _succeeds(self, cmd: List[str]) -> bool:
        try:
            await self._run(cmd)
            return True
        except (McpDockError, OSError) as e:
            logger.debug(f"{' '.join(cmd)} failed: {e}")
            return False

    async def is_installed(self) -> bool:
        return await self._succeeds(["docker", "--version"])

    async def is_running(self) -> bool:
        """Check whether the docker daemon answers."""
        return await self._succeeds(["docker", "info"])

    async def start_daemon(self) -> bool:
        """
        Best-effort start of the docker daemon.

        On macOS Docker Desktop is opened and the daemon polled until it
        answers. On Linux systemd is asked to start it. Other platforms are
        not supported.

        Returns:
            True if the daemon is running afterwards
        """
        logger.info("Attempting to start Docker daemon...")
        system = platform.system()

        if system == "Darwin":
            if not await self._succeeds(["open", "-a", "Docker"]):
                logger.error("Could not launch Docker Desktop")
                return False

            logger.info("Waiting for Docker to start...")
            for _ in range(self.daemon_start_attempts):
                if await self.is_running():
                    logger.info("Docker daemon started successfully.")
                    return True
                await asyncio.sleep(self.daemon_start_interval)

            logger.error("Docker daemon did not start within the expected time.")
            return False

        if system == "Linux":
            if await self._succeeds(["sudo", "systemctl", "start", "docker"]):
                logger.info("Docker daemon started successfully.")
                return True
            return False

        if system == "Windows":
            logger.info("On Windows, please start Docker Desktop manually.")
            return False

        logger.error(f"Unsupported platform: {system}")
        return False

    async def is_image_pulled(self, image: str) -> bool:
        return await self._succeeds(["docker", "image", "inspect", image])

    async def pull_image(self, image: str) -> bool:
        """
        Pull an image.

        Args:
            image: Image reference

        Returns:
            True if the pull succeeded
        """
        logger.info(f"Pulling Docker image: {image}...")
        try:
            await self._run(["docker", "pull", image])
        except (McpDockError, OSError) as e:
            logger.error(f"Failed to pull image {image}: {e}")
            return False

        logger.info(f"Successfully pulled image: {image}")
        return True

    async def _container_names(self, name: str, include_stopped: bool = False) -> List[str]:
        cmd = ["docker", "ps"]
        if include_stopped:
            cmd.append("-a")
        cmd += ["--filter", f"name={name}", "--format", "{{.Names}}"]
        stdout, _ = await self._run(cmd)
        return [line.strip() for line in stdout.splitlines() if line.strip()]

    async def is_container_running(self, name: str) -> bool:
        """Check for a running container with exactly this name."""
        try:
            # name= filters by substring, so compare the names exactly
            return name in await self._container_names(name)
        except (McpDockError, OSError) as e:
            logger.debug(f"Could not list containers: {e}")
            return False

    async def run_container(self, spec: ContainerSpec) -> CommandResult:
        """
        Launch a container.

        Args:
            spec: Container image, name, args, env file and port mappings

        Returns:
            CommandResult with the container id as output on success
        """
        cmd = ["docker", "run"]
        if spec.detached:
            cmd.append("-d")
        cmd += ["--name", spec.name]
        for mapping in spec.ports:
            cmd += ["-p", f"{mapping.host_port}:{mapping.container_port}"]
        if spec.env_file:
            cmd += ["--env-file", spec.env_file]
        cmd.append(spec.image)
        cmd += spec.args

        try:
            stdout, stderr = await self._run(cmd)
        except CommandError as e:
            logger.error(f"Failed to run container {spec.name}: {e.stderr}")
            return CommandResult(success=False, error=e.stderr or e.message, stderr=e.stderr or "")
        except (McpDockError, OSError) as e:
            logger.error(f"Error running container {spec.name}: {e}")
            return CommandResult(success=False, error=str(e))

        return CommandResult(success=True, output=stdout.strip(), stderr=stderr)

    async def stop_and_remove(self, name: str) -> bool:
        """
        Stop and remove a container.

        Succeeds without touching anything when no such container exists.
        """
        try:
            if name not in await self._container_names(name, include_stopped=True):
                logger.debug(f"No container named {name}, nothing to remove")
                return True
            await self._run(["docker", "stop", name])
            await self._run(["docker", "rm", name])
        except (McpDockError, OSError) as e:
            logger.error(f"Failed to stop and remove container {name}: {e}")
            return False

        return True

    async def get_logs(self, name: str, tail: int = LOG_TAIL_LINES) -> CommandResult:
        """Fetch the last ``tail`` lines of a container's stdout and stderr."""
        try:
            stdout, stderr = await self._run(["docker", "logs", "--tail", str(tail), name])
        except (McpDockError, OSError) as e:
            return CommandResult(success=False, error=str(e))
        return CommandResult(success=True, output=stdout, stderr=stderr)

    async def print_logs(self, name: str) -> None:
        """Log a container's recent output for troubleshooting."""
        result = await self.get_logs(name)
        if not result.success:
            logger.warning(f"Could not retrieve logs for {name}: {result.error}")
            return
        if result.output.strip():
            logger.info(f"Container {name} stdout:\n{result.output.rstrip()}")
        if result.stderr.strip():
            logger.info(f"Container {name} stderr:\n{result.stderr.rstrip()}")
        if not result.output.strip() and not result.stderr.strip():
            logger.info(f"Container {name} produced no logs")

    async def exec_in_container(
        self, name: str, command: List[str], stdin: Optional[str] = None
    ) -> CommandResult:
        """Run a command inside a running container."""
        cmd = ["docker", "exec"]
        if stdin is not None:
            cmd.append("-i")
        cmd += [name] + command
        try:
            stdout, stderr = await self._run(cmd, input=stdin)
        except CommandError as e:
            return CommandResult(success=False, error=e.stderr or e.message, stderr=e.stderr or "")
        except (McpDockError, OSError) as e:
            return CommandResult(success=False, error=str(e))
        return CommandResult(success=True, output=stdout, stderr=stderr)

    async def run_interactive(
        self,
        image: str,
        args: List[str],
        stdin: str,
        timeout: float,
        env_file: Optional[str] = None,
        env: Optional[dict] = None,
    ) -> CommandResult:
        """
        Run a throwaway container with ``stdin`` piped in.

        The container is removed on exit. The output is returned even when
        the process exits non-zero, since servers often exit once their
        input closes.
        """
        cmd = ["docker", "run", "--rm", "-i"]
        if env_file:
            cmd += ["--env-file", env_file]
        for key, value in (env or {}).items():
            cmd += ["-e", f"{key}={value}"]
        cmd.append(image)
        cmd += args

        try:
            stdout, stderr, return_code = await run_command(cmd, timeout=timeout, input=stdin)
        except (McpDockError, OSError) as e:
            return CommandResult(success=False, error=str(e))

        if return_code != 0 and not stdout.strip():
            return CommandResult(
                success=False,
                error=f"container exited with code {return_code}",
                stderr=stderr,
            )
        return CommandResult(success=True, output=stdout, stderr=stderr)

    async def stream_logs(
        self,
        names: List[str],
        on_line: Callable[[str, str, bool], None],
        tail: int = LOG_TAIL_LINES,
    ) -> bool:
        """
        Follow the logs of several containers until they exit or the task is cancelled.

        Args:
            names: Container names
            on_line: Called with (container name, line, is_stderr) for every line
            tail: Lines of history to show first

        Returns:
            True if every follower exited cleanly
        """

        async def pump(name: str, stream: asyncio.StreamReader, is_stderr: bool):
            while True:
                raw = await stream.readline()
                if not raw:
                    break
                on_line(name, raw.decode(errors="replace").rstrip("\n"), is_stderr)

        async def follow(name: str) -> int:
            process = await asyncio.create_subprocess_exec(
                "docker", "logs", "--follow", "--tail", str(tail), name,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                await asyncio.gather(
                    pump(name, process.stdout, False),
                    pump(name, process.stderr, True),
                )
                return await process.wait()
            finally:
                if process.returncode is None:
                    process.kill()
                    await process.wait()

        try:
            codes = await asyncio.gather(*(follow(name) for name in names))
        except OSError as e:
            logger.error(f"Error streaming logs: {e}")
            return False
        return all(code == 0 for code in codes)
