"""Status command."""

import logging
from typing import Any, Dict, Optional

import click

from ..context import OrchestratorContext
from ..orchestrator import Orchestrator
from ..presentation import format_status_row, print_header, status_label
from . import prepare_servers

logger = logging.getLogger(__name__)


async def handle_command(ctx: OrchestratorContext, server_name: Optional[str] = None) -> Dict[str, Any]:
    """Print one status row per server."""
    servers = prepare_servers(ctx, server_name)
    orchestrator = Orchestrator(ctx)

    print_header("MCP Server Status", width=40)
    rows = []
    for server in servers:
        running = await orchestrator.is_server_running(server)
        click.echo(format_status_row(server, running))
        rows.append(
            {
                "name": server.name,
                "status": status_label(server, running),
                "type": server.type,
                "description": server.description,
            }
        )

    ctx.store.save(ctx.state)
    return {"status": "success", "servers": rows, "errors": {}}
