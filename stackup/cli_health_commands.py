"""Service health CLI command."""
import json
import time
from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from stackup.config.loader import ConfigFileError, load_services, select_services
from stackup.core.config import StackupConfig
from stackup.core.runner import CommandRunner
from stackup.services.health import HealthChecker, ServiceHealth

# Module-level console instance (will be set by register function)
console: Console = Console()

STATUS_STYLES = {
    "healthy": ("green", "✓"),
    "starting": ("yellow", "↻"),
    "unhealthy": ("red", "✗"),
}


def render_health_table(results: List[ServiceHealth]) -> Table:
    table = Table(title="Service Health", show_header=True, header_style="bold")
    table.add_column("Service", style="cyan")
    table.add_column("Port", justify="right")
    table.add_column("Status")
    table.add_column("Container")
    table.add_column("Port State")
    table.add_column("HTTP")
    table.add_column("Uptime", justify="right")

    for health in results:
        color, symbol = STATUS_STYLES.get(health.status, ("white", "?"))
        table.add_row(
            health.service,
            str(health.port),
            f"[{color}]{symbol} {health.status}[/{color}]",
            health.container_status,
            health.port_status,
            health.http_status,
            health.uptime,
        )
    return table


def run_health_check(
    config: StackupConfig,
    runner: CommandRunner,
    service: Optional[str] = None,
    as_json: bool = False,
) -> bool:
    """Check services and print a table (or JSON). Returns True if all are healthy."""
    from stackup.cli_support import print_error

    try:
        services = select_services(load_services(config.services_file), service)
    except ConfigFileError as e:
        print_error(console, str(e))
        return False

    checker = HealthChecker(runner, http_timeout=config.http_timeout)
    results = checker.check_all(services)

    if as_json:
        console.print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        console.print(render_health_table(results))
        healthy = sum(1 for r in results if r.healthy)
        console.print(f"\nTotal services: {len(results)}")
        console.print(f"[green]Healthy: {healthy}[/green]")
        console.print(f"[red]Unhealthy: {len(results) - healthy}[/red]")

    return all(r.healthy for r in results)


def health(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Refresh continuously until Ctrl+C"),
    interval: Optional[int] = typer.Option(None, "--interval", min=1, help="Watch refresh interval in seconds"),
    service: Optional[str] = typer.Option(None, "--service", "-s", help="Check only this service"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory with repositories.conf/services.conf"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Check port, HTTP endpoint, container state and uptime of each service.

    Exits 0 only when every checked service is healthy.
    """
    from stackup.cli_support import get_runner, load_config, print_info, setup_file_logging

    setup_file_logging(log_file=log_file, verbose=verbose)
    config = load_config(config_dir)
    runner = get_runner()

    if not watch:
        if not run_health_check(config, runner, service=service, as_json=as_json):
            raise typer.Exit(1)
        return

    refresh = interval or config.watch_interval
    print_info(console, f"Starting health check monitor (refresh: {refresh}s, Ctrl+C to exit)")
    try:
        while True:
            console.clear()
            console.print(f"Health Check Monitor - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
            run_health_check(config, runner, service=service, as_json=as_json)
            time.sleep(refresh)
    except KeyboardInterrupt:
        console.print("\n[dim]Monitor stopped[/dim]")


def register_health_commands(app: typer.Typer, shared_console: Console):
    """Register the health command with the main Typer app."""
    global console
    console = shared_console

    app.command()(health)
