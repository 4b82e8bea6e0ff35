"""Stop command."""

import logging
from typing import Any, Dict, Optional

from ..context import OrchestratorContext
from ..orchestrator import Orchestrator
from . import aggregate, docker_unavailable, prepare_servers
from .dry_run import dry_run_remove_servers

logger = logging.getLogger(__name__)


async def handle_command(
    ctx: OrchestratorContext,
    server_name: Optional[str] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """
    Stop the selected servers.

    IDE config entries are removed in one write at the end, and only for
    servers whose owner agreed to IDE config management.

    Returns:
        Command result as dictionary
    """
    if dry_run:
        logger.info("Dry run mode enabled - no actual changes will be made")

    servers = prepare_servers(ctx, server_name, save_state=not dry_run)

    if dry_run:
        ok = dry_run_remove_servers(ctx, servers)
        return {"status": "success" if ok else "error", "servers": [], "errors": {}, "dry_run": True}

    orchestrator = Orchestrator(ctx)
    if not await orchestrator.check_docker_availability():
        return docker_unavailable(ctx)

    succeeded = []
    errors = {}
    to_remove = []
    for server in servers:
        if await orchestrator.stop_server(server):
            succeeded.append(server.name)
            if orchestrator.may_manage_ide_entry(server):
                to_remove.append(server.name)
        else:
            errors[server.name] = "stop failed"
            logger.error(f"Failed to stop {server.name}.")

    removed = orchestrator.remove_ide_entries(to_remove)

    ctx.store.save(ctx.state)
    logger.info(f"Stop complete: {len(succeeded)} succeeded, {len(errors)} failed")
    return aggregate(succeeded, errors, ide_entries_removed=to_remove if removed else [])
