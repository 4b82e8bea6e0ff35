"""Update command: pull fresh images."""

import logging
from typing import Any, Dict, Optional

import click

from ..context import OrchestratorContext
from ..models import TRANSPORT_TYPES
from ..orchestrator import Orchestrator
from ..presentation import print_header
from . import aggregate, docker_unavailable, prepare_servers

logger = logging.getLogger(__name__)


async def handle_command(ctx: OrchestratorContext, server_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Pull the image of every selected server.

    Returns:
        Command result with per-transport ``updated`` and ``failed`` tallies
    """
    servers = prepare_servers(ctx, server_name, reconcile_state=False)

    orchestrator = Orchestrator(ctx)
    if not await orchestrator.check_docker_availability():
        return docker_unavailable(ctx, save_state=False)

    print_header("Updating MCP Server Images", width=60)
    updated = {transport: 0 for transport in TRANSPORT_TYPES}
    failed = {transport: 0 for transport in TRANSPORT_TYPES}
    succeeded = []
    errors = {}
    for server in servers:
        logger.info(f"Updating image for {server.name} ({server.image})...")
        if await orchestrator.update_server_image(server):
            updated[server.type] += 1
            succeeded.append(server.name)
            click.echo(f"{server.name} image update: SUCCESS")
        else:
            failed[server.type] += 1
            errors[server.name] = "image pull failed"
            click.echo(f"{server.name} image update: FAILED")

    print_header("Update Summary", width=60)
    click.echo(f"HTTP Servers: {updated['http']} updated, {failed['http']} failed")
    click.echo(f"STDIO Servers: {updated['stdio']} updated, {failed['stdio']} failed")
    print_header(f"Update {'COMPLETED SUCCESSFULLY' if not errors else 'COMPLETED WITH ERRORS'}", width=60)

    if errors:
        logger.warning("Some updates failed. Check the logs above for details.")
    else:
        hint = f"mcp-dock --server {server_name} start" if server_name else "mcp-dock start"
        click.echo(f"To start using the updated servers, run:\n{hint}")

    return aggregate(succeeded, errors, updated=updated, failed=failed)
