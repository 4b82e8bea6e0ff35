"""Console output and the interactive yes/no prompt."""

import json
import logging
import re
from typing import Any, Dict, Optional

import click

from .config import AppConfig
from .models import IdeEntry, ServerDefinition

logger = logging.getLogger(__name__)

DEFAULT_TEST_PROMPT = "Test connection to the MCP server"

_TEST_PROMPT_RE = re.compile(r"Try using (.*?)(\n|$)", re.IGNORECASE)


def confirm(question: str, default: bool = True) -> bool:
    """Ask a yes/no question, answering with the default if prompting fails."""
    try:
        return click.confirm(question, default=default)
    except (click.Abort, EOFError, OSError) as e:
        logger.debug(f"Prompt error: {e!r}, using default: {'Yes' if default else 'No'}")
        return default


def print_header(title: str, width: int = 50) -> None:
    rule = "=" * width
    click.echo(f"{rule}\n{title}\n{rule}")


def extract_test_prompt(server: ServerDefinition) -> str:
    """Pull the suggested chat prompt out of a server's post-start instructions."""
    if server.post_start_instructions:
        match = _TEST_PROMPT_RE.search(server.post_start_instructions)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return DEFAULT_TEST_PROMPT


def display_ide_config(server: ServerDefinition, entry: IdeEntry, configured: bool = False) -> None:
    """
    Show how the IDE reaches a server.

    Args:
        server: Server definition
        entry: IDE entry computed for the server
        configured: True when the entry was written automatically, so the
            manual setup steps are left out
    """
    click.echo("=== Configuration Instructions ===")
    click.echo(f"MCP Server: {server.description} ({server.name})")
    if "url" in entry:
        click.echo(f"URL: {entry['url']}")

    if not configured:
        click.echo("To configure in your IDE:")
        click.echo("1. Open the IDE settings")
        click.echo("2. Navigate to the MCP servers section and add a new global MCP server")
        click.echo("3. Add the following configuration:")
        click.echo(json.dumps({"mcpServers": {server.name: entry}}, indent=2))
        click.echo("4. After setting up, test by typing this in the IDE chat:")
        click.echo(f"   \"{extract_test_prompt(server)}\"")
    else:
        click.echo("Test by typing this in the IDE chat:")
        click.echo(f"\"{extract_test_prompt(server)}\"")
    click.echo("===============================")


def suggest_env_file_creation(config: AppConfig, server: ServerDefinition) -> None:
    """Explain how to create the missing env file of a server."""
    env_file = config.env_file_path(server.name)
    example = config.env_example_path(server.name)
    generic = config.generic_env_example_path()

    click.secho(f"Environment file not found: {env_file}", fg="red", err=True)
    click.echo("You need to create an environment file with your credentials.\n", err=True)

    if example.exists():
        click.echo("You can create one by copying the example file:", err=True)
        click.secho(f"cp {example} {env_file}", fg="cyan", err=True)
    elif generic.exists():
        click.echo("You can create one by copying the generic example file:", err=True)
        click.secho(f"cp {generic} {env_file}", fg="cyan", err=True)
    else:
        click.echo("Create a new environment file:", err=True)
        click.secho(f"touch {env_file}", fg="cyan", err=True)

    click.echo("\nThen edit the file to add your credentials and settings.", err=True)


def status_label(server: ServerDefinition, running: bool) -> str:
    if running:
        return "Running"
    return "On-Demand" if server.is_stdio else "Stopped"


def format_status_row(server: ServerDefinition, running: bool) -> str:
    """One aligned line of the status table."""
    status = status_label(server, running)
    return (
        f"{(server.name + ':').ljust(21)}"
        f"{('[' + status + ']').ljust(14)}"
        f"Type: {server.type.ljust(6)}"
        f"{server.description}"
    )


def print_document(title: str, document: Dict[str, Any], color: Optional[str] = None) -> None:
    click.secho(f"\n{title}\n", fg=color, bold=True)
    click.echo(json.dumps(document, indent=2))
