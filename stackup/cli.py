#!/usr/bin/env python3
"""stackup CLI - Deploy a set of docker compose services onto a fresh server."""

import typer
from rich.console import Console

from stackup.cli_bootstrap_commands import register_bootstrap_commands
from stackup.cli_clone_commands import register_clone_commands
from stackup.cli_deploy_commands import register_deploy_commands
from stackup.cli_github_commands import register_github_commands
from stackup.cli_health_commands import register_health_commands
from stackup.cli_start_commands import register_start_commands
from stackup.core.logger import get_logger

app = typer.Typer(
    name="stackup",
    help="""stackup - Server bootstrap and service deployment

Clone, configure, build and health-check the API services in one go.

Quick start:
  stackup start                    # Everything, step by step
  stackup deploy --setup-env       # Configure .env files and ports
  stackup deploy --parallel        # Build and start all services
  stackup health --watch           # Keep an eye on them

More commands: stackup --help
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

# Attach modular subcommands
register_start_commands(app, console)
register_bootstrap_commands(app, console)
register_github_commands(app, console)
register_clone_commands(app, console)
register_deploy_commands(app, console)
register_health_commands(app, console)


def main():
    app()


if __name__ == "__main__":
    main()
