"""Logs command: show or follow the output of running http server containers."""

import logging
import re
from typing import Any, Dict, Optional

import click

from ..context import OrchestratorContext
from ..docker_client import LOG_TAIL_LINES
from . import prepare_servers

logger = logging.getLogger(__name__)

_BYTES_LITERAL_RE = re.compile(r"b['\"](.*)['\"]")
_DOUBLE_BACKSLASH_RE = re.compile(r"\\\\([^ntr'\"])")
_TRAILING_QUOTE_NEWLINE_RE = re.compile(r"['\"]\r?\n")

BOX_RULE = "═" * 77


def format_log_line(line: str) -> str:
    """
    Clean one log line of serialization artifacts.

    Unwraps ``b'...'`` literals, unescapes quotes, newlines and tabs, and
    drops stray quotes around JSON objects. Blank lines become ``""``.
    """
    if not line.strip():
        return ""

    result = _BYTES_LITERAL_RE.sub(r"\1", line)
    result = (
        result.replace('\\"', '"')
        .replace("\\n", "\n")
        .replace("\\r", "")
        .replace("\\t", "    ")
        .replace("\\'", "'")
    )
    result = _DOUBLE_BACKSLASH_RE.sub(lambda m: "\\" + m.group(1), result)
    result = result.replace('"{', "{").replace('}"', "}")
    result = _TRAILING_QUOTE_NEWLINE_RE.sub("", result)
    return result.rstrip()


def format_log_text(text: str) -> str:
    """Format every line, collapsing runs of blank lines into one."""
    if not text or not text.strip():
        return ""

    lines = []
    previous_empty = False
    for line in text.split("\n"):
        formatted = format_log_line(line)
        if not formatted:
            if not previous_empty:
                lines.append("")
            previous_empty = True
            continue
        lines.append(formatted)
        previous_empty = False
    return "\n".join(lines).strip("\n")


def _echo_stream_line(name: str, line: str, is_stderr: bool) -> None:
    formatted = format_log_line(line)
    if formatted:
        click.echo(f"[{name}] {formatted}", err=is_stderr)


async def handle_command(
    ctx: OrchestratorContext,
    server_name: Optional[str] = None,
    stream: bool = False,
) -> Dict[str, Any]:
    """
    Print recent logs of running http servers, or follow them.

    Args:
        ctx: Orchestrator context
        server_name: Only this server
        stream: Follow the logs until interrupted

    Returns:
        Command result as dictionary
    """
    servers = prepare_servers(ctx, server_name, reconcile_state=False)

    running = []
    for server in servers:
        if server.is_stdio:
            logger.info(f"Skipping {server.name} as STDIO servers don't have persistent logs")
            continue
        if await ctx.docker.is_container_running(server.name):
            running.append(server.name)
        else:
            logger.info(f"Server {server.name} is not running, skipping logs")

    if not running:
        logger.error("No running servers found to display logs from")
        return {"status": "error", "error": "No running servers", "servers": [], "errors": {}}

    if stream:
        logger.info(f"Streaming logs for {', '.join(running)}. Press Ctrl+C to exit.")
        ok = await ctx.docker.stream_logs(running, _echo_stream_line)
        return {"status": "success" if ok else "error", "servers": running, "errors": {}}

    errors = {}
    for name in running:
        click.echo(f"\n╔{BOX_RULE}")
        click.echo(f"║ Logs for {name} (last {LOG_TAIL_LINES} lines)")
        click.echo(f"╚{BOX_RULE}\n")

        result = await ctx.docker.get_logs(name)
        if not result.success:
            logger.error(f"Could not read logs for {name}: {result.error}")
            errors[name] = "logs unavailable"
            continue

        stdout_text = format_log_text(result.output)
        stderr_text = format_log_text(result.stderr)
        if stdout_text:
            click.echo(stdout_text)
        if stderr_text:
            click.echo("\n--- STDERR ---")
            click.echo(stderr_text)
        if not stdout_text and not stderr_text:
            click.echo("No logs available")

    shown = [name for name in running if name not in errors]
    status = "success" if not errors else ("partial" if shown else "error")
    return {"status": status, "servers": shown, "errors": errors}
