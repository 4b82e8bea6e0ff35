"""Tests for health probes."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from conftest import http_server, stdio_server

from mcp_dock.health import HealthValidator, build_request, find_response_line, judge_response
from mcp_dock.models import CommandResult, HealthCheckSpec

_RealAsyncClient = httpx.AsyncClient


def mock_http(handler):
    """Patch httpx.AsyncClient so every request goes to ``handler``."""

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return _RealAsyncClient(*args, **kwargs)

    return patch("mcp_dock.health.httpx.AsyncClient", side_effect=factory)


def make_validator(docker=None, resolver=None):
    return HealthValidator(docker or MagicMock(), env_file_resolver=resolver)


class TestRequest:
    """Tests for probe request construction and response judgement"""

    def test_build_request_shape(self):
        request = build_request(HealthCheckSpec(method="tools/list", params={"a": 1}), request_id=42)
        assert request == {"jsonrpc": "2.0", "id": 42, "method": "tools/list", "params": {"a": 1}}

    def test_random_id_in_range(self):
        for _ in range(20):
            assert 1 <= build_request(HealthCheckSpec(method="ping"))["id"] <= 10000

    def test_error_is_unhealthy(self):
        assert judge_response({"id": 1, "error": {"code": -1}}, HealthCheckSpec(method="m"), "svc") is False

    def test_required_substring(self):
        spec = HealthCheckSpec(method="m", response_contains='"tools":[]')
        assert judge_response({"result": {"tools": []}}, spec, "svc") is True
        assert judge_response({"result": {}}, spec, "svc") is False

    def test_find_response_line_skips_noise(self):
        output = "\n".join(
            [
                "starting server...",
                '{"jsonrpc":"2.0","id":7,"result":{}}',
                "{broken",
                '{"jsonrpc":"2.0","id":42,"result":{"ok":true}}',
            ]
        )
        assert find_response_line(output, 42) == {"jsonrpc": "2.0", "id": 42, "result": {"ok": True}}
        assert find_response_line(output, 99) is None


class TestPortProbe:
    """Tests for is_port_open"""

    @pytest.mark.asyncio
    async def test_any_response_counts_as_open(self):
        with mock_http(lambda request: httpx.Response(404)):
            assert await make_validator().is_port_open("localhost", 9001) is True

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        with mock_http(refuse):
            assert await make_validator().is_port_open("localhost", 9001) is False

    @pytest.mark.asyncio
    async def test_out_of_range_port_is_closed(self):
        assert await make_validator().is_port_open("localhost", 99999) is False

    @pytest.mark.asyncio
    async def test_probes_sse_path(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200)

        with mock_http(handler):
            await make_validator().is_port_open("localhost", 9001)
        assert seen == ["http://localhost:9001/sse"]


class TestValidate:
    """Tests for HealthValidator.validate"""

    @pytest.mark.asyncio
    async def test_no_health_check_is_healthy(self):
        docker = MagicMock()
        docker.run_interactive = AsyncMock()
        validator = make_validator(docker)

        assert await validator.validate(http_server(health_check=False)) is True
        assert await validator.validate(stdio_server(health_check=False)) is True
        docker.run_interactive.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_healthy(self):
        requests = []

        def handler(request):
            body = json.loads(request.content)
            requests.append((str(request.url), body))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": []}})

        with mock_http(handler):
            assert await make_validator().validate(http_server(), port=9500) is True

        url, body = requests[0]
        assert url == "http://localhost:9500/sse"
        assert body["method"] == "tools/list"

    @pytest.mark.asyncio
    async def test_http_port_from_args(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json={"result": {}})

        with mock_http(handler):
            await make_validator().validate(http_server(args=["--port", "9123"]))
        assert urls == ["http://localhost:9123/sse"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        with mock_http(lambda request: httpx.Response(500)):
            assert await make_validator().validate(http_server(), port=9500) is False

    @pytest.mark.asyncio
    async def test_http_jsonrpc_error(self):
        with mock_http(lambda request: httpx.Response(200, json={"error": {"code": -32601}})):
            assert await make_validator().validate(http_server(), port=9500) is False

    @pytest.mark.asyncio
    async def test_http_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with mock_http(slow):
            assert await make_validator().validate(http_server(), port=9500) is False

    @pytest.mark.asyncio
    async def test_stdio_matches_request_id(self):
        docker = MagicMock()

        async def run_interactive(image, args, stdin, timeout, env_file=None, env=None):
            request = json.loads(stdin)
            output = f'log line\n{{"jsonrpc":"2.0","id":{request["id"]},"result":{{"tools":[]}}}}\n'
            return CommandResult(success=True, output=output)

        docker.run_interactive = AsyncMock(side_effect=run_interactive)
        validator = make_validator(docker, resolver=lambda name: f"/env/{name}.env")

        assert await validator.validate(stdio_server(image="img")) is True

        kwargs = docker.run_interactive.await_args.kwargs
        assert kwargs["image"] == "img"
        assert kwargs["env_file"] == "/env/svcio.env"
        assert kwargs["env"] == {"TIMEOUT_MS": "10000"}
        assert kwargs["timeout"] == 10

    @pytest.mark.asyncio
    async def test_stdio_no_matching_response(self):
        docker = MagicMock()
        docker.run_interactive = AsyncMock(return_value=CommandResult(success=True, output='{"id": -1}\n'))
        assert await make_validator(docker).validate(stdio_server()) is False

    @pytest.mark.asyncio
    async def test_stdio_process_failure(self):
        docker = MagicMock()
        docker.run_interactive = AsyncMock(return_value=CommandResult(success=False, error="exit 1"))
        assert await make_validator(docker).validate(stdio_server()) is False
