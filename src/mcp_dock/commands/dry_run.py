"""Preview IDE config changes of start and stop without writing anything."""

import copy
import logging
from typing import List

import click

from ..context import OrchestratorContext
from ..ide_config import MCP_SERVERS_KEY
from ..models import ServerDefinition
from ..orchestrator import Orchestrator
from ..presentation import print_document

logger = logging.getLogger(__name__)


def _banner(text: str) -> None:
    click.secho(f"\n{text}\n", fg="cyan", bold=True)


def dry_run_add_servers(ctx: OrchestratorContext, servers: List[ServerDefinition]) -> bool:
    """
    Show the IDE config before and after adding the given servers.

    Returns:
        False if no IDE config path is configured
    """
    path = ctx.config.cursor_mcp_config_path
    if path is None:
        logger.error("IDE MCP config path not configured, cannot perform dry run")
        return False

    orchestrator = Orchestrator(ctx)
    current = ctx.ide.read(path)
    future = copy.deepcopy(current)
    entries = future.get(MCP_SERVERS_KEY)
    if not isinstance(entries, dict):
        entries = {}
        future[MCP_SERVERS_KEY] = entries

    for server in servers:
        entries[server.name] = orchestrator.build_ide_entry(server)

    _banner("===== DRY RUN: START OPERATION =====")
    print_document("Current Complete IDE MCP Config File:", current, color="blue")
    print_document("Future Complete IDE MCP Config File (after start):", future, color="green")
    _banner(f"===== DRY RUN: NO CHANGES MADE [Servers: {', '.join(s.name for s in servers)}] =====")
    return True


def dry_run_remove_servers(ctx: OrchestratorContext, servers: List[ServerDefinition]) -> bool:
    """
    Show the IDE config before and after removing the given servers.

    Returns:
        False if no IDE config path is configured
    """
    path = ctx.config.cursor_mcp_config_path
    if path is None:
        logger.error("IDE MCP config path not configured, cannot perform dry run")
        return False

    current = ctx.ide.read(path)
    future = copy.deepcopy(current)
    entries = future.get(MCP_SERVERS_KEY)
    if not isinstance(entries, dict):
        logger.info("No MCP servers found in IDE config, nothing to remove")
        return True

    for server in servers:
        entries.pop(server.name, None)

    _banner("===== DRY RUN: STOP OPERATION =====")
    print_document("Current Complete IDE MCP Config File:", current, color="blue")
    print_document("Future Complete IDE MCP Config File (after stop):", future, color="red")
    _banner(f"===== DRY RUN: NO CHANGES MADE [Servers: {', '.join(s.name for s in servers)}] =====")
    return True
