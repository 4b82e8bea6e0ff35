"""
Persisted server state.

``StateStore`` owns reading and writing the state file. The remaining
functions are pure: they take a ``StateFile`` and return a new one.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .models import ServerDefinition, ServerState, StateFile
from .utils import DEFAULT_HTTP_PORT, find_port_in_args, http_endpoint, stdio_endpoint

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """Load and save the JSON state file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> StateFile:
        """
        Read the state file.

        Returns:
            The persisted state, or an empty state when the file is missing
            or unreadable. Never raises.
        """
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug(f"State file {self.path} not found, starting with empty state")
            return StateFile(servers=[], updated_on=_now())
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading state file {self.path}: {e}")
            return StateFile(servers=[], updated_on=_now())

        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} is not a JSON object, ignoring it")
            return StateFile(servers=[], updated_on=_now())

        try:
            return StateFile.from_dict(data)
        except (TypeError, KeyError, ValueError) as e:
            logger.warning(f"State file {self.path} has an unexpected shape, ignoring it: {e}")
            return StateFile(servers=[], updated_on=_now())

    def save(self, state: StateFile) -> bool:
        """
        Write the state file with a fresh ``updatedOn`` timestamp.

        Failures are logged and reported through the return value only.
        """
        document = StateFile(servers=state.servers, updated_on=_now()).to_dict()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(document, f, indent=2)
                f.write("\n")
        except OSError as e:
            logger.error(f"Error saving state file {self.path}: {e}")
            return False

        logger.debug(f"State saved to {self.path}")
        return True


def default_endpoint(server: ServerDefinition) -> str:
    """Endpoint recorded for a server that has never been started."""
    if server.is_http:
        return http_endpoint(find_port_in_args(server.args) or DEFAULT_HTTP_PORT)
    return stdio_endpoint(server.image)


def get_by_name(state: StateFile, name: str) -> Optional[ServerState]:
    for server in state.servers:
        if server.name == name:
            return server
    return None


def reconcile(
    state: StateFile,
    definitions: List[ServerDefinition],
    env_file_for=None,
) -> StateFile:
    """
    Produce exactly one ServerState per definition, in definition order.

    Existing entries keep their endpoint, consent and liveness. New servers
    get the default endpoint and ``online=False``. Entries for names that are
    no longer defined are left out of the result.

    Args:
        state: Previously persisted state
        definitions: Current server definitions
        env_file_for: Optional callable mapping a server name to its env file path
    """
    servers: List[ServerState] = []
    for definition in definitions:
        existing = get_by_name(state, definition.name)
        env_file = str(env_file_for(definition.name)) if env_file_for else None
        if existing is not None:
            servers.append(
                ServerState(
                    name=definition.name,
                    endpoint=existing.endpoint or default_endpoint(definition),
                    online=existing.online,
                    manage_cursor_config=existing.manage_cursor_config,
                    env_file=env_file or existing.env_file,
                )
            )
        else:
            logger.debug(f"Adding new server {definition.name} to state")
            servers.append(
                ServerState(
                    name=definition.name,
                    endpoint=default_endpoint(definition),
                    online=False,
                    env_file=env_file,
                )
            )

    dropped = [s.name for s in state.servers if s.name not in {d.name for d in definitions}]
    if dropped:
        logger.debug(f"Not carrying state for undefined servers: {', '.join(dropped)}")

    return state.with_servers(servers)


def add_or_update(state: StateFile, server_state: ServerState) -> StateFile:
    """Replace the entry with the same name, or append a new one."""
    servers = list(state.servers)
    for i, existing in enumerate(servers):
        if existing.name == server_state.name:
            servers[i] = server_state
            break
    else:
        servers.append(server_state)
    return state.with_servers(servers)


def update_status(
    state: StateFile, name: str, online: bool, endpoint: Optional[str] = None
) -> StateFile:
    """
    Record liveness for one server.

    The previous endpoint is kept when ``endpoint`` is not given, and the
    consent flag always carries over. An unknown name gets a new entry.
    """
    existing = get_by_name(state, name)
    if existing is None:
        return add_or_update(state, ServerState(name=name, endpoint=endpoint or "", online=online))

    return add_or_update(
        state,
        ServerState(
            name=name,
            endpoint=endpoint if endpoint else existing.endpoint,
            online=online,
            manage_cursor_config=existing.manage_cursor_config,
            env_file=existing.env_file,
        ),
    )


def update_consent(
    state: StateFile, name: str, manage_cursor_config: bool, env_file: Optional[str] = None
) -> StateFile:
    """Record whether the IDE config entry of a server may be managed automatically."""
    existing = get_by_name(state, name)
    if existing is None:
        return add_or_update(
            state,
            ServerState(
                name=name,
                endpoint="",
                online=False,
                manage_cursor_config=manage_cursor_config,
                env_file=env_file,
            ),
        )

    return add_or_update(
        state,
        ServerState(
            name=existing.name,
            endpoint=existing.endpoint,
            online=existing.online,
            manage_cursor_config=manage_cursor_config,
            env_file=existing.env_file or env_file,
        ),
    )
