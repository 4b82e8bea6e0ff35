"""IDE MCP config file access."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from .models import IdeEntry
from .utils import mask_sensitive_data

logger = logging.getLogger(__name__)

MCP_SERVERS_KEY = "mcpServers"

PathLike = Union[str, Path]


class IdeConfigSync:
    """
    Reads and merges entries of an IDE's JSON MCP config.

    Only ``mcpServers.<name>`` keys are ever changed; everything else in the
    document is written back as it was read.
    """

    def read(self, path: PathLike) -> Dict[str, Any]:
        """
        Read the whole config document.

        Returns:
            Parsed document, or an empty dict if the file is missing or invalid
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"IDE MCP config file not found: {path}")
            return {}

        try:
            with open(path, "r") as f:
                data = json.load(f)
        except ValueError as e:
            logger.warning(f"Could not parse IDE MCP config file as JSON: {e}")
            return {}
        except OSError as e:
            logger.warning(f"Error reading IDE MCP config file: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"IDE MCP config file {path} is not a JSON object, ignoring it")
            return {}

        logger.debug(f"Successfully read IDE MCP config file: {path}")
        return data

    def write(self, path: PathLike, document: Dict[str, Any]) -> bool:
        """Write the whole config document, creating parent directories."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                json.dump(document, f, indent=2)
        except (OSError, TypeError) as e:
            logger.error(f"Failed to write IDE MCP config file: {e}")
            return False

        logger.debug(f"Successfully wrote IDE MCP config file: {path}")
        logger.debug(f"IDE MCP config contents: {mask_sensitive_data(document)}")
        return True

    def get_servers(self, path: PathLike) -> Dict[str, IdeEntry]:
        servers = self.read(path).get(MCP_SERVERS_KEY)
        return servers if isinstance(servers, dict) else {}

    def add_or_update(self, path: PathLike, entries: Dict[str, IdeEntry]) -> bool:
        """
        Merge entries into ``mcpServers``.

        Args:
            path: IDE config file
            entries: Server name to IDE entry

        Returns:
            True if the file was written
        """
        document = self.read(path)
        servers = document.get(MCP_SERVERS_KEY)
        if not isinstance(servers, dict):
            servers = {}
            document[MCP_SERVERS_KEY] = servers

        for name, entry in entries.items():
            servers[name] = entry
            logger.debug(f"Added/updated server {name} in IDE MCP config")

        return self.write(path, document)

    def remove(self, path: PathLike, names: List[str]) -> bool:
        """
        Delete entries from ``mcpServers``.

        A missing file or nothing to remove counts as success.
        """
        path = Path(path)
        if not path.exists():
            logger.debug(f"IDE MCP config file not found: {path}, nothing to remove")
            return True

        document = self.read(path)
        servers = document.get(MCP_SERVERS_KEY)
        if not isinstance(servers, dict):
            logger.debug("No MCP servers in IDE config, nothing to remove")
            return True

        removed = False
        for name in names:
            if name in servers:
                del servers[name]
                logger.debug(f"Removed server {name} from IDE MCP config")
                removed = True

        if not removed:
            return True
        return self.write(path, document)
