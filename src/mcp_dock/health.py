"""Health probes for MCP servers: a port check and a single JSON-RPC request."""

import json
import logging
import random
from typing import Any, Callable, Dict, Optional

import httpx
from mcp.types import JSONRPCRequest

from .docker_client import DockerClient
from .models import HealthCheckSpec, ServerDefinition
from .utils import DEFAULT_HTTP_PORT, SSE_PATH, find_port_in_args, mask_sensitive_data

logger = logging.getLogger(__name__)


def generate_request_id() -> int:
    return random.randint(1, 10000)


def build_request(spec: HealthCheckSpec, request_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Build the JSON-RPC 2.0 probe request.

    Args:
        spec: Health check method and params
        request_id: Explicit id (random when omitted)

    Returns:
        Request as a JSON-serializable dict
    """
    request = JSONRPCRequest(
        jsonrpc="2.0",
        id=request_id if request_id is not None else generate_request_id(),
        method=spec.method,
        params=dict(spec.params),
    )
    return request.model_dump(by_alias=True, mode="json", exclude_none=True)


def judge_response(response: Any, spec: HealthCheckSpec, server_name: str) -> bool:
    """Decide whether a JSON-RPC response counts as healthy."""
    if not isinstance(response, dict):
        logger.error(f"Health check for {server_name} returned a non-object response")
        return False

    if response.get("error") is not None:
        logger.error(f"JSON-RPC error from {server_name}: {json.dumps(response['error'])}")
        return False

    if spec.response_contains:
        response_str = json.dumps(response, separators=(",", ":"), ensure_ascii=False)
        if spec.response_contains not in response_str:
            logger.error(
                f"Response from {server_name} does not contain required string: "
                f"\"{spec.response_contains}\""
            )
            return False

    return True


def find_response_line(output: str, request_id: int) -> Optional[Dict[str, Any]]:
    """Return the first JSON object line in ``output`` answering ``request_id``."""
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and data.get("id") == request_id:
            return data
    return None


class HealthValidator:
    """Judges server liveness from a single synthetic request."""

    def __init__(
        self,
        docker: DockerClient,
        port_probe_timeout_ms: int = 2000,
        http_timeout_ms: int = 5000,
        stdio_timeout_ms: int = 10000,
        env_file_resolver: Optional[Callable[[str], Optional[str]]] = None,
    ):
        """
        Initialize health validator.

        Args:
            docker: Docker client used for stdio probes
            port_probe_timeout_ms: Timeout for ``is_port_open``
            http_timeout_ms: Default timeout for HTTP probes
            stdio_timeout_ms: Default timeout for stdio probes
            env_file_resolver: Maps a server name to an existing env file path, or None
        """
        self.docker = docker
        self.port_probe_timeout_ms = port_probe_timeout_ms
        self.http_timeout_ms = http_timeout_ms
        self.stdio_timeout_ms = stdio_timeout_ms
        self.env_file_resolver = env_file_resolver

    async def is_port_open(
        self,
        host: str,
        port: int,
        path: str = SSE_PATH,
        timeout_ms: Optional[int] = None,
    ) -> bool:
        """
        Check whether anything answers HTTP on a port.

        Any response, including error statuses, counts as open. Only the
        response headers are awaited so event streams do not hang the probe.
        """
        timeout = (timeout_ms or self.port_probe_timeout_ms) / 1000
        url = f"http://{host}:{port}{path}"
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                async with client.stream("GET", url):
                    return True
        except (httpx.HTTPError, httpx.InvalidURL, OverflowError, ValueError) as e:
            logger.debug(f"Port {port} not answering: {e}")
            return False

    async def validate(self, server: ServerDefinition, port: Optional[int] = None) -> bool:
        """
        Probe a server with its configured health check.

        A server without a health check is healthy by definition.

        Args:
            server: Server definition
            port: Port of an http server (defaults to the ``--port`` arg, then 9000)

        Returns:
            True if the server answered correctly
        """
        if server.health_check is None:
            logger.info(f"Skipping health check for {server.name} as no health check is configured")
            return True

        try:
            if server.is_http:
                port = port or find_port_in_args(server.args) or DEFAULT_HTTP_PORT
                return await self._validate_http(server, server.health_check, port)
            return await self._validate_stdio(server, server.health_check)
        except Exception as e:
            logger.error(f"Error validating health for {server.name}: {e}", exc_info=True)
            return False

    async def _validate_http(self, server: ServerDefinition, spec: HealthCheckSpec, port: int) -> bool:
        endpoint = f"http://localhost:{port}{SSE_PATH}"
        request = build_request(spec)
        timeout = (spec.timeout_ms or self.http_timeout_ms) / 1000
        logger.debug(f"Sending health validation request to {endpoint}: {mask_sensitive_data(request)}")

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    endpoint,
                    json=request,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Error validating HTTP health for {server.name}: {e}")
            return False

        if not response.is_success:
            logger.error(f"HTTP error from {server.name}: {response.status_code} {response.reason_phrase}")
            return False

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Health check response from {server.name} is not JSON: {e}")
            return False

        logger.debug(f"Health validation response: {mask_sensitive_data(data)}")
        return judge_response(data, spec, server.name)

    async def _validate_stdio(self, server: ServerDefinition, spec: HealthCheckSpec) -> bool:
        request = build_request(spec)
        timeout_ms = spec.timeout_ms or self.stdio_timeout_ms
        env_file = self.env_file_resolver(server.name) if self.env_file_resolver else None
        logger.debug(f"Validating STDIO health for {server.name} with request: {request}")

        result = await self.docker.run_interactive(
            image=server.image,
            args=server.args,
            stdin=json.dumps(request) + "\n",
            timeout=timeout_ms / 1000,
            env_file=env_file,
            env={"TIMEOUT_MS": str(timeout_ms)},
        )
        if not result.success:
            logger.error(f"STDIO probe for {server.name} failed: {result.error} {result.stderr.strip()}".rstrip())
            return False

        data = find_response_line(result.output, request["id"])
        if data is None:
            logger.error(f"No JSON-RPC response with id {request['id']} found in {server.name} output")
            return False

        logger.debug(f"STDIO validation response: {mask_sensitive_data(data)}")
        return judge_response(data, spec, server.name)
