"""All-in-one `start` command: bootstrap through health check in one run."""
import time
from typing import Callable, List, Optional, Tuple

import typer
from rich.console import Console
from rich.panel import Panel

from stackup.cli_bootstrap_commands import run_bootstrap
from stackup.cli_clone_commands import run_clone
from stackup.cli_deploy_commands import run_deploy, run_setup_env
from stackup.cli_github_commands import run_github_setup
from stackup.cli_health_commands import run_health_check
from stackup.config.loader import (
    ConfigFileError,
    has_placeholder_owner,
    load_services,
    replace_placeholder_owner,
)
from stackup.core.config import StackupConfig
from stackup.core.lock import LockError, run_lock
from stackup.core.runner import CommandRunner
from stackup.services.github_auth import GitHubAuthenticator
from stackup.services.preflight import check_disk_space, check_network

# Module-level console instance (will be set by register function)
console: Console = Console()

TOTAL_STEPS = 6


def _step_header(number: int, name: str, description: str) -> None:
    console.print()
    console.print(Panel(f"[bold]{name}[/bold]\n[dim]{description}[/dim]", title=f"Step {number}/{TOTAL_STEPS}", expand=False))


def _preflight(config: StackupConfig, runner: CommandRunner) -> bool:
    from stackup.cli_support import print_error, print_info

    if not check_network(runner):
        print_error(console, "No network connectivity detected")
        print_info(console, "Internet access is needed for GitHub, Docker images and system packages")
        return False

    disk = check_disk_space(config.github_dir, config.required_disk_gb)
    if not disk.ok:
        print_error(console, "Insufficient disk space")
        print_info(console, f"Required: {disk.required_gb}GB")
        print_info(console, f"Available: {disk.available_gb}GB")
        print_info(console, "Space is needed for the repositories, Docker images and containers")
        return False
    return True


def _ensure_repository_owner(config: StackupConfig, non_interactive: bool) -> bool:
    """Fill in the GitHub owner placeholder in repositories.conf if still present."""
    from stackup.cli_support import print_error, print_info, print_success

    if not has_placeholder_owner(config.repositories_file):
        return True

    print_error(console, "GitHub username not configured in repositories.conf")
    if non_interactive:
        print_info(console, f"Edit {config.repositories_file} and replace YOUR_GITHUB_USERNAME")
        return False

    owner = typer.prompt("Enter your GitHub username").strip()
    try:
        replace_placeholder_owner(config.repositories_file, owner)
    except ValueError as e:
        print_error(console, str(e))
        return False
    print_success(console, f"Updated repositories.conf with username: {owner}")
    return True


def _step_github(runner: CommandRunner, non_interactive: bool) -> bool:
    from stackup.cli_support import print_info, print_success

    if GitHubAuthenticator(runner).test_ssh_connection():
        print_success(console, "GitHub SSH already configured!")
        if non_interactive or not typer.confirm("Reconfigure GitHub authentication?", default=False):
            print_info(console, "Using existing GitHub configuration")
            return True
    return run_github_setup(runner, method="ssh", non_interactive=non_interactive)


def _print_summary(config: StackupConfig, elapsed: float) -> None:
    from stackup.cli_support import print_header, print_success

    print_header(console, "Deployment Complete")
    print_success(console, "All services are deployed!")

    try:
        services = load_services(config.services_file)
    except ConfigFileError:
        services = []
    if services:
        console.print("\n[cyan]Service URLs:[/cyan]")
        for service in services:
            console.print(f"  • {service.name}: http://localhost:{service.port}")

    minutes, seconds = divmod(int(elapsed), 60)
    console.print(f"\n[dim]Total time: {minutes}m {seconds}s[/dim]")
    console.print("\n[cyan]Useful commands:[/cyan]")
    console.print("  stackup health --watch          # Monitor services")
    console.print("  stackup deploy --restart NAME   # Restart one service")
    console.print("  stackup deploy --stop           # Stop everything")


def start(
    skip_bootstrap: bool = typer.Option(False, "--skip-bootstrap", help="Skip server initialization"),
    skip_github: bool = typer.Option(False, "--skip-github", help="Skip GitHub authentication"),
    skip_clone: bool = typer.Option(False, "--skip-clone", help="Skip repository cloning"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Run with minimal prompts (saved answers and defaults)"),
    sequential: bool = typer.Option(False, "--sequential", help="Clone and deploy one at a time instead of in parallel"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory with repositories.conf/services.conf"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Run the whole deployment: bootstrap, GitHub, clone, env setup, deploy, health."""
    from stackup.cli_support import (
        get_runner,
        handle_cli_error,
        is_mock,
        load_config,
        print_error,
        print_info,
        print_success,
        print_warning,
        setup_file_logging,
    )

    active_log = setup_file_logging(log_file=log_file, verbose=verbose)
    config = load_config(config_dir)
    runner = get_runner()
    parallel = not sequential

    try:
        with run_lock(config.lock_file):
            if not _preflight(config, runner):
                raise typer.Exit(1)

            console.print(Panel.fit(
                "[bold]stackup - All-in-One Deployment[/bold]\n"
                "Bootstrap → GitHub → Clone → Configure → Deploy → Health",
                border_style="blue",
            ))
            if not non_interactive and not typer.confirm("Ready to start?", default=True):
                print_warning(console, "Deployment cancelled")
                return

            started = time.monotonic()

            steps: List[Tuple[str, str, bool, Callable[[], bool]]] = [
                ("Bootstrap Server", "Installing Docker, Git, and configuring firewall",
                 skip_bootstrap, lambda: run_bootstrap(config, runner)),
                ("GitHub Authentication", "Configuring GitHub access for repository cloning",
                 skip_github, lambda: _step_github(runner, non_interactive)),
                ("Clone Repositories", "Cloning the service repositories",
                 skip_clone, lambda: _ensure_repository_owner(config, non_interactive)
                 and run_clone(config, runner, parallel=parallel)),
                ("Configure Environment", "Setting up environment variables and ports",
                 False, lambda: run_setup_env(config, non_interactive=non_interactive)),
                ("Deploy Services", "Building and starting all Docker containers",
                 False, lambda: run_deploy(config, runner, parallel=parallel)),
            ]
            for number, (name, description, skipped, action) in enumerate(steps, start=1):
                _step_header(number, name, description)
                if skipped:
                    print_warning(console, f"Skipping {name.lower()}")
                    continue
                if not action():
                    print_error(console, f"{name} failed!")
                    print_info(console, f"Log file: {active_log}")
                    raise typer.Exit(1)
                print_success(console, f"{name} completed")

            _step_header(6, "Health Check", "Verifying all services are running and healthy")
            if not is_mock():
                print_info(console, f"Waiting {config.stabilize_delay} seconds for services to stabilize...")
                time.sleep(config.stabilize_delay)
            if run_health_check(config, runner):
                print_success(console, "All services are healthy!")
            else:
                print_warning(console, "Some services may not be healthy yet")
                print_info(console, "Check status with: stackup health --watch")

            _print_summary(config, time.monotonic() - started)
    except LockError as e:
        handle_cli_error(e, console, verbose=verbose)


def register_start_commands(app: typer.Typer, shared_console: Console):
    """Register the start command with the main Typer app."""
    global console
    console = shared_console

    app.command()(start)
