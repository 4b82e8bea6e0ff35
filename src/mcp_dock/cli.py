"""mcp-dock command line entry point."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import click

from . import __version__
from .commands import health_check as health_check_command
from .commands import logs as logs_command
from .commands import start as start_command
from .commands import status as status_command
from .commands import stop as stop_command
from .commands import sync as sync_command
from .commands import update as update_command
from .config import load_app_config
from .context import OrchestratorContext
from .exceptions import McpDockError

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Dict[str, Any]]]


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _run_handler(ctx: OrchestratorContext, handler: Handler, **kwargs: Any) -> Dict[str, Any]:
    try:
        return await handler(ctx, **kwargs)
    finally:
        ctx.close()


def run_command(click_ctx: click.Context, handler: Handler, **kwargs: Any) -> None:
    """Build the orchestrator context, run one handler and exit with its outcome."""
    options = click_ctx.obj
    try:
        ctx = OrchestratorContext.create(config=options["config"])
        result = asyncio.run(_run_handler(ctx, handler, server_name=options["server"], **kwargs))
    except McpDockError as e:
        logger.error(e.message)
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(2)
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)

    logger.debug(f"Command result: {result}")
    sys.exit(1 if result.get("status") == "error" else 0)


@click.group()
@click.option("--server", "-n", "server", default=None, help="Only act on this server")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Extra env file with configuration overrides",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, server: Optional[str], config_file: Optional[Path], verbose: bool) -> None:
    """mcp-dock - run MCP servers in Docker and keep the IDE config in sync."""
    config = load_app_config(config_file=config_file)
    setup_logging("DEBUG" if verbose else config.log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["server"] = server


@cli.command()
@click.option("--dry-run", "-d", is_flag=True, help="Show the IDE config change without making it")
@click.pass_context
def start(ctx: click.Context, dry_run: bool) -> None:
    """Start MCP servers."""
    run_command(ctx, start_command.handle_command, dry_run=dry_run)


@cli.command()
@click.option("--dry-run", "-d", is_flag=True, help="Show the IDE config change without making it")
@click.pass_context
def stop(ctx: click.Context, dry_run: bool) -> None:
    """Stop MCP servers."""
    run_command(ctx, stop_command.handle_command, dry_run=dry_run)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the status of MCP servers."""
    run_command(ctx, status_command.handle_command)


@cli.command("health-check")
@click.pass_context
def health_check(ctx: click.Context) -> None:
    """Probe MCP servers and re-sync the IDE config."""
    run_command(ctx, health_check_command.handle_command)


@cli.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Pull the latest images of MCP servers."""
    run_command(ctx, update_command.handle_command)


@cli.command()
@click.option("--stream", "-s", is_flag=True, help="Follow the logs")
@click.pass_context
def logs(ctx: click.Context, stream: bool) -> None:
    """Display logs of running MCP server containers."""
    run_command(ctx, logs_command.handle_command, stream=stream)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Refresh recorded server status from Docker."""
    run_command(ctx, sync_command.handle_command)


@cli.command()
def version() -> None:
    """Show version."""
    click.echo(__version__)


def main() -> None:
    """Main entry point."""
    cli(prog_name="mcp-dock")


if __name__ == "__main__":
    main()
