"""Service deployment CLI command: env setup, deploy, stop, restart."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from stackup.config.loader import ConfigFileError, load_services, select_services
from stackup.core.cache import SetupCache
from stackup.core.config import StackupConfig
from stackup.core.runner import CommandRunner
from stackup.envfile.setup import EnvSetupWizard, SetupError
from stackup.services.deployment import DeploymentResult, DeploymentSummary, ServiceDeployer

# Module-level console instance (will be set by register function)
console: Console = Console()


def run_setup_env(config: StackupConfig, non_interactive: bool = False) -> bool:
    """Run the interactive environment setup. Returns False on failure."""
    from stackup.cli_support import print_error, print_info

    try:
        services = load_services(config.services_file)
        wizard = EnvSetupWizard(
            config,
            services,
            SetupCache(config.cache_file),
            console,
            non_interactive=non_interactive,
        )
        result = wizard.run()
    except (ConfigFileError, SetupError) as e:
        print_error(console, str(e))
        return False

    if result.services_backup:
        print_info(console, f"Previous services.conf saved as {result.services_backup}")
    return True


def _print_result(result: DeploymentResult) -> None:
    from stackup.cli_support import print_error, print_success, print_warning

    if not result.success:
        print_error(console, f"{result.service}: {result.message}")
    elif result.healthy is False:
        print_warning(console, f"{result.service}: deployed, but not healthy yet")
    else:
        print_success(console, f"{result.service}: deployed and healthy")


def _print_summary(summary: DeploymentSummary, config: StackupConfig) -> None:
    from stackup.cli_support import print_header, print_info, print_success, print_warning

    print_header(console, "Deployment Summary")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Service", style="cyan")
    table.add_column("Result")
    table.add_column("Stage")
    table.add_column("Health")
    for result in summary.results:
        table.add_row(
            result.service,
            "[green]deployed[/green]" if result.success else "[red]failed[/red]",
            result.stage,
            {True: "healthy", False: "not ready", None: "-"}[result.healthy],
        )
    console.print(table)
    console.print(f"[green]Successfully deployed: {len(summary.succeeded)}[/green]")
    console.print(f"[red]Failed: {len(summary.failed)}[/red]")

    if summary.ok:
        print_success(console, "All services deployed successfully!")
    else:
        print_warning(console, "Some services failed to deploy")
        print_info(console, f"Check logs in {config.log_dir}/build_*.log and start_*.log")


def run_deploy(
    config: StackupConfig,
    runner: CommandRunner,
    parallel: bool = False,
    service: Optional[str] = None,
) -> bool:
    """Deploy services from services.conf. Returns False if any failed."""
    from stackup.cli_support import print_error, print_header, print_success

    try:
        services = select_services(load_services(config.services_file), service)
    except ConfigFileError as e:
        print_error(console, str(e))
        return False
    print_success(console, f"Found {len(services)} services to deploy")

    mode = "Parallel" if parallel else "Sequential"
    print_header(console, f"Deploying Services ({mode} Mode)")
    summary = ServiceDeployer(runner, config).deploy_all(services, parallel=parallel)
    for result in summary.results:
        _print_result(result)

    _print_summary(summary, config)
    return summary.ok


def deploy(
    parallel: bool = typer.Option(False, "--parallel", "-p", help="Deploy services concurrently"),
    service: Optional[str] = typer.Option(None, "--service", "-s", help="Deploy only this service"),
    setup_env: bool = typer.Option(False, "--setup-env", help="Run interactive environment setup and exit"),
    stop: bool = typer.Option(False, "--stop", help="Stop all services and exit"),
    restart: Optional[str] = typer.Option(None, "--restart", help="Restart one service and exit"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Use saved answers and defaults"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory with repositories.conf/services.conf"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Build and start services with docker compose, then wait for health."""
    from stackup.cli_support import (
        get_runner,
        handle_cli_error,
        load_config,
        print_header,
        print_success,
        setup_file_logging,
    )

    setup_file_logging(log_file=log_file, verbose=verbose)
    config = load_config(config_dir)

    if setup_env:
        if not run_setup_env(config, non_interactive=non_interactive):
            raise typer.Exit(1)
        console.print("\n[cyan]Next step:[/cyan] stackup deploy")
        return

    runner = get_runner()

    if stop or restart:
        try:
            services = load_services(config.services_file)
        except ConfigFileError as e:
            handle_cli_error(e, console, verbose=verbose)
        deployer = ServiceDeployer(runner, config)

        if stop:
            print_header(console, "Stopping All Services")
            deployer.stop_all(services)
            print_success(console, "All services stopped")
            return

        print_header(console, f"Restarting Service: {restart}")
        try:
            result = deployer.restart(services, restart)
        except ConfigFileError as e:
            handle_cli_error(e, console, verbose=verbose)
        _print_result(result)
        if not result.success:
            raise typer.Exit(1)
        return

    print_header(console, "Service Deployment")
    if not run_deploy(config, runner, parallel=parallel, service=service):
        raise typer.Exit(1)

    console.print("\n[cyan]Next step:[/cyan] stackup health")


def register_deploy_commands(app: typer.Typer, shared_console: Console):
    """Register the deploy command with the main Typer app."""
    global console
    console = shared_console

    app.command()(deploy)
