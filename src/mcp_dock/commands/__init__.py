"""Command handlers: batch drivers over the orchestrator."""

import logging
from typing import Any, Dict, List, Optional

from ..config import select_servers
from ..context import OrchestratorContext
from ..models import ServerDefinition
from ..state import reconcile

logger = logging.getLogger(__name__)


def prepare_servers(
    ctx: OrchestratorContext,
    server_name: Optional[str] = None,
    reconcile_state: bool = True,
    save_state: bool = True,
) -> List[ServerDefinition]:
    """
    Reconcile and persist state, then pick the servers a command runs over.

    With ``save_state`` off the reconciled state is kept in memory only.

    Raises:
        ServerNotFoundError: If ``server_name`` is not an enabled server
    """
    if reconcile_state:
        ctx.state = reconcile(ctx.store.load(), ctx.definitions, ctx.config.env_file_path)
        if save_state:
            ctx.store.save(ctx.state)
    return select_servers(ctx.definitions, server_name)


def aggregate(succeeded: List[str], errors: Dict[str, str], **extra: Any) -> Dict[str, Any]:
    """Build a command result from per-server outcomes."""
    if not errors:
        status = "success"
    elif succeeded:
        status = "partial"
    else:
        status = "error"
    result: Dict[str, Any] = {"status": status, "servers": succeeded, "errors": errors}
    result.update(extra)
    return result


def docker_unavailable(ctx: OrchestratorContext, save_state: bool = True) -> Dict[str, Any]:
    """Result for a command that cannot run without docker. State is saved as-is."""
    if save_state:
        ctx.store.save(ctx.state)
    return {
        "status": "error",
        "error": "Docker is not available",
        "servers": [],
        "errors": {},
    }
