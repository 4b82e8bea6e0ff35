"""Shared helpers: subprocess execution, JSON parsing, ports and endpoints."""

import asyncio
import logging
import re
import socket
from typing import Any, List, Optional, Tuple

from .exceptions import TimeoutError

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 9000

SSE_PATH = "/sse"

SENSITIVE_PATTERNS = (
    "TOKEN",
    "KEY",
    "SECRET",
    "PASSWORD",
    "AUTH",
    "CREDENTIAL",
    "APIKEY",
    "CERT",
    "PRIVATE",
    "ACCESS",
)

_ENDPOINT_PORT_RE = re.compile(r":(\d+)/")


async def run_command(
    cmd: List[str],
    timeout: Optional[float] = 60,
    input: Optional[str] = None,
) -> Tuple[str, str, int]:
    """
    Run an external command and capture its output.

    Args:
        cmd: Command and arguments
        timeout: Timeout in seconds (None waits forever)
        input: Text piped to the process standard input

    Returns:
        Tuple of (stdout, stderr, return_code)

    Raises:
        TimeoutError: If the command does not finish in time (the process is killed)
        FileNotFoundError: If the executable does not exist
    """
    logger.debug(f"Executing: {' '.join(cmd)}")
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(input=input.encode() if input is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise TimeoutError(" ".join(cmd[:3]), timeout or 0)

    return (
        stdout.decode(errors="replace") if stdout else "",
        stderr.decode(errors="replace") if stderr else "",
        process.returncode if process.returncode is not None else -1,
    )


def is_valid_port(port: int) -> bool:
    return 1 <= port <= 65535


def find_port_in_args(args: List[str]) -> Optional[int]:
    """Return the value following the first ``--port`` flag that holds a valid port, if any."""
    for i in range(len(args) - 1):
        if args[i] == "--port":
            try:
                port = int(args[i + 1])
            except ValueError:
                continue
            if is_valid_port(port):
                return port
    return None


def port_from_endpoint(endpoint: Optional[str]) -> Optional[int]:
    """Extract the port from an ``http://host:port/...`` endpoint."""
    if not endpoint:
        return None
    match = _ENDPOINT_PORT_RE.search(endpoint)
    if match:
        port = int(match.group(1))
        if is_valid_port(port):
            return port
    return None


def http_endpoint(port: int) -> str:
    return f"http://localhost:{port}{SSE_PATH}"


def stdio_endpoint(image: str) -> str:
    return f"command:docker:{image}"


def allocate_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for a currently free TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def is_sensitive_key(key: str) -> bool:
    upper = key.upper()
    return any(pattern in upper for pattern in SENSITIVE_PATTERNS)


def mask_sensitive_value(value: str) -> str:
    """Keep a few leading/trailing characters of a secret, mask the rest."""
    if not value:
        return "[not set]"
    if len(value) <= 8:
        return value[:2] + "*" * max(len(value) - 3, 1) + value[-1]
    return value[:4] + "*" * min(8, len(value) - 8) + value[-4:]


def mask_sensitive_data(data: Any) -> Any:
    """Return a copy of ``data`` with values under sensitive keys masked."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if isinstance(value, str) and is_sensitive_key(str(key)):
                masked[key] = mask_sensitive_value(value)
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    return data
