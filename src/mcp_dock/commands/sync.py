"""Sync command: refresh recorded liveness from what is actually running."""

import logging
from typing import Any, Dict, Optional

import click

from ..context import OrchestratorContext
from ..orchestrator import Orchestrator
from ..presentation import print_header
from ..state import update_status
from . import prepare_servers

logger = logging.getLogger(__name__)


async def handle_command(ctx: OrchestratorContext, server_name: Optional[str] = None) -> Dict[str, Any]:
    servers = prepare_servers(ctx, server_name)
    orchestrator = Orchestrator(ctx)

    print_header("Syncing MCP Server State", width=40)
    running = []
    for server in servers:
        logger.info(f"Checking status for {server.name}...")
        is_running = await orchestrator.is_server_running(server)
        ctx.state = update_status(ctx.state, server.name, is_running)
        if is_running:
            running.append(server.name)
        click.echo(f"{server.name}: {'RUNNING' if is_running else 'STOPPED'}")

    ctx.store.save(ctx.state)
    print_header("Sync completed", width=40)
    return {"status": "success", "servers": running, "errors": {}}
