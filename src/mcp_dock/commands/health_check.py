"""Health-check command."""

import logging
from typing import Any, Dict, Optional

import click

from ..context import OrchestratorContext
from ..orchestrator import Orchestrator
from ..presentation import print_header
from ..state import update_status
from . import aggregate, prepare_servers

logger = logging.getLogger(__name__)


async def handle_command(ctx: OrchestratorContext, server_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Probe every selected server and re-sync its IDE config entry.

    The IDE config is written without prompting. Stdio servers are recorded
    offline whatever the probe says, since they only run on demand.

    Returns:
        Command result as dictionary
    """
    servers = prepare_servers(ctx, server_name)
    orchestrator = Orchestrator(ctx)

    print_header("MCP Server Health Check")
    healthy_servers = []
    errors = {}
    for server in servers:
        logger.info(f"Checking health of {server.name}...")
        healthy = await orchestrator.health_check(server)
        click.echo(f"{server.name}: {'HEALTHY' if healthy else 'UNHEALTHY'}")

        ctx.state = update_status(ctx.state, server.name, healthy and server.is_http)
        await orchestrator.update_ide_config_for_server(server, force=True)

        if healthy:
            healthy_servers.append(server.name)
        else:
            errors[server.name] = "unhealthy"

    ctx.store.save(ctx.state)
    print_header(f"Health Check Summary: {'ALL HEALTHY' if not errors else 'ISSUES DETECTED'}")
    logger.info(f"Health check complete: {len(healthy_servers)} healthy, {len(errors)} unhealthy")
    return aggregate(healthy_servers, errors)
