"""Data models for mcp-dock."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional

TransportType = Literal["http", "stdio"]

TRANSPORT_TYPES = ("http", "stdio")

# IDE config entry: {"url": ...} for http, {"command": ..., "args": [...]} for stdio
IdeEntry = Dict[str, Any]


@dataclass(frozen=True)
class HealthCheckSpec:
    """Declarative health probe: one JSON-RPC request and its success criteria."""

    method: str
    params: Dict[str, Any] = field(default_factory=dict)
    response_contains: Optional[str] = None
    timeout_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthCheckSpec":
        """Build a spec from its YAML/JSON form (snake_case or camelCase keys)."""
        if "method" not in data:
            raise ValueError("health check is missing required 'method'")
        return cls(
            method=str(data["method"]),
            params=dict(data.get("params") or {}),
            response_contains=data.get("response_contains", data.get("responseContains")),
            timeout_ms=data.get("timeout_ms", data.get("timeoutMs")),
        )


@dataclass
class ServerDefinition:
    """Author-supplied description of one MCP server.

    ``args`` is the only field the orchestrator touches: a start without an
    explicit ``--port`` appends the allocated one in place.
    """

    name: str
    type: TransportType
    image: str
    args: List[str] = field(default_factory=list)
    description: str = ""
    health_check: Optional[HealthCheckSpec] = None
    post_start_instructions: Optional[str] = None

    def __post_init__(self):
        if self.type not in TRANSPORT_TYPES:
            raise ValueError(
                f"Server '{self.name}' has invalid type '{self.type}'. Must be 'http' or 'stdio'."
            )
        if not self.description:
            self.description = self.name

    @property
    def is_http(self) -> bool:
        return self.type == "http"

    @property
    def is_stdio(self) -> bool:
        return self.type == "stdio"


@dataclass(frozen=True)
class ServerState:
    """Last observed status of one server, persisted in the state file."""

    name: str
    endpoint: str = ""
    online: bool = False
    manage_cursor_config: Optional[bool] = None
    env_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "endpoint": self.endpoint,
            "online": self.online,
        }
        if self.env_file:
            data["envFile"] = self.env_file
        if self.manage_cursor_config is not None:
            data["manageCursorConfig"] = self.manage_cursor_config
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerState":
        consent = data.get("manageCursorConfig")
        return cls(
            name=str(data["name"]),
            endpoint=str(data.get("endpoint") or ""),
            online=data.get("online") is True,
            manage_cursor_config=consent if isinstance(consent, bool) else None,
            env_file=data.get("envFile"),
        )


@dataclass(frozen=True)
class StateFile:
    """The whole persisted state document."""

    servers: List[ServerState] = field(default_factory=list)
    updated_on: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "servers": [server.to_dict() for server in self.servers],
            "updatedOn": self.updated_on,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateFile":
        # "mcps" is the key older state files were written with
        raw_servers = data.get("servers", data.get("mcps", []))
        if not isinstance(raw_servers, list):
            raw_servers = []
        servers = [
            ServerState.from_dict(item)
            for item in raw_servers
            if isinstance(item, dict) and "name" in item
        ]
        return cls(servers=servers, updated_on=str(data.get("updatedOn") or ""))

    def with_servers(self, servers: List[ServerState]) -> "StateFile":
        return replace(self, servers=list(servers))


@dataclass(frozen=True)
class PortMapping:
    """Host to container port mapping for ``docker run -p``."""

    host_port: int
    container_port: int


@dataclass
class ContainerSpec:
    """Everything ``docker run`` needs to launch a server container."""

    image: str
    name: str
    args: List[str] = field(default_factory=list)
    env_file: Optional[str] = None
    ports: List[PortMapping] = field(default_factory=list)
    detached: bool = True


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a fallible docker operation."""

    success: bool
    output: str = ""
    error: Optional[str] = None
    stderr: str = ""
