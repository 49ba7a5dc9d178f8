"""Server bootstrap CLI command."""
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from stackup.config.loader import ConfigFileError, load_services
from stackup.core.config import StackupConfig
from stackup.core.runner import CommandRunner
from stackup.services.bootstrap import BootstrapError, ServerBootstrapper

# Module-level console instance (will be set by register function)
console: Console = Console()


def _service_ports(config: StackupConfig) -> List[int]:
    from stackup.cli_support import print_warning

    try:
        return [service.port for service in load_services(config.services_file)]
    except ConfigFileError as e:
        print_warning(console, f"{e}; only SSH will be opened in the firewall")
        return []


def run_bootstrap(config: StackupConfig, runner: CommandRunner, dry_run: bool = False) -> bool:
    """Run every bootstrap step, printing progress. Returns False on failure."""
    from stackup.cli_support import print_error, print_header, print_info, print_success, print_warning

    bootstrapper = ServerBootstrapper(runner, config, dry_run=dry_run)

    try:
        print_header(console, "Checking Operating System")
        print_success(console, f"Detected OS: {bootstrapper.os.name}")

        print_header(console, "Checking Sudo Permissions")
        if bootstrapper.check_sudo():
            print_success(console, "Sudo permissions available")
        else:
            print_warning(console, "Installing packages requires sudo; you may be prompted for your password.")

        steps = [
            ("Installing Docker", bootstrapper.install_docker),
            ("Installing Docker Compose", bootstrapper.install_compose),
            ("Installing Git", bootstrapper.install_git),
            ("Installing Additional Tools", bootstrapper.install_tools),
        ]
        for title, step in steps:
            print_header(console, title)
            message = step()
            if message.startswith("Would"):
                print_info(console, message)
            else:
                print_success(console, message)

        print_header(console, "Configuring Firewall")
        print_success(console, bootstrapper.configure_firewall(_service_ports(config)))

        print_header(console, "Setting Up Directories")
        for directory in bootstrapper.setup_directories():
            print_info(console, f"{'Would create' if dry_run else 'Ready'}: {directory}")
    except BootstrapError as e:
        print_error(console, str(e))
        return False

    print_header(console, "System Information")
    table = Table(show_header=False, box=None)
    table.add_column(style="cyan")
    table.add_column()
    for name, value in bootstrapper.system_info().items():
        table.add_row(name, value)
    console.print(table)

    if not dry_run and not runner.mock and not bootstrapper.in_docker_group():
        print_warning(console, "Log out and back in to activate docker group membership")
        print_info(console, "Or run: newgrp docker")
    return True


def bootstrap(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be installed without changing anything"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory with repositories.conf/services.conf"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Prepare the server: Docker, Docker Compose, Git, tools, firewall, directories."""
    from stackup.cli_support import (
        confirm_action,
        get_runner,
        is_mock,
        load_config,
        print_header,
        print_success,
        print_warning,
        setup_file_logging,
    )

    setup_file_logging(log_file=log_file, verbose=verbose)
    config = load_config(config_dir)

    print_header(console, "Server Bootstrap")
    console.print("This will install: Docker, Docker Compose, Git, curl, wget, jq, net-tools")
    console.print("and open the service ports in the firewall.")

    if not dry_run and not confirm_action("Continue?", yes_flag=yes, mock=is_mock()):
        print_warning(console, "Installation cancelled")
        return

    if not run_bootstrap(config, get_runner(), dry_run=dry_run):
        raise typer.Exit(1)

    if dry_run:
        print_warning(console, "DRY RUN - Nothing was changed")
    else:
        print_success(console, "Server is ready for deployment")
        console.print("\n[cyan]Next steps:[/cyan]")
        console.print("  stackup github   # Configure GitHub access")
        console.print("  stackup clone    # Clone the service repositories")


def register_bootstrap_commands(app: typer.Typer, shared_console: Console):
    """Register the bootstrap command with the main Typer app."""
    global console
    console = shared_console

    app.command()(bootstrap)
