"""
mcp-dock

Workstation-local orchestrator that runs MCP servers as Docker containers
and keeps the IDE MCP config in sync with their lifecycle.

License: CC BY-NC 4.0
"""

from .context import OrchestratorContext
from .orchestrator import Orchestrator

__version__ = "1.0.0"
__author__ = "semenovsd"
__license__ = "CC BY-NC 4.0"
__all__ = ["Orchestrator", "OrchestratorContext"]
