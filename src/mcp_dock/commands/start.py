"""Start command."""

import logging
from typing import Any, Dict, Optional

from ..context import OrchestratorContext
from ..orchestrator import Orchestrator
from . import aggregate, docker_unavailable, prepare_servers
from .dry_run import dry_run_add_servers

logger = logging.getLogger(__name__)


async def handle_command(
    ctx: OrchestratorContext,
    server_name: Optional[str] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """
    Start the selected servers one after another.

    Args:
        ctx: Orchestrator context
        server_name: Only start this server
        dry_run: Preview the IDE config change instead of starting anything

    Returns:
        Command result as dictionary
    """
    if dry_run:
        logger.info("Dry run mode enabled - no actual changes will be made")

    servers = prepare_servers(ctx, server_name)

    if dry_run:
        ok = dry_run_add_servers(ctx, servers)
        return {"status": "success" if ok else "error", "servers": [], "errors": {}, "dry_run": True}

    orchestrator = Orchestrator(ctx)
    if not await orchestrator.check_docker_availability():
        return docker_unavailable(ctx)

    succeeded = []
    errors = {}
    for server in servers:
        if await orchestrator.start_server(server):
            succeeded.append(server.name)
            logger.info(f"Server {server.name} started successfully.")
        else:
            errors[server.name] = "start failed"
            logger.error(f"Failed to start {server.name}")

    ctx.store.save(ctx.state)
    logger.info(f"Start complete: {len(succeeded)} succeeded, {len(errors)} failed")
    return aggregate(succeeded, errors)
