"""Repository cloning CLI command."""
from typing import Optional

import typer
from rich.console import Console

from stackup.config.loader import ConfigFileError, load_repositories
from stackup.core.config import StackupConfig
from stackup.core.runner import CommandRunner
from stackup.services.preflight import check_network
from stackup.services.repositories import CloneStatus, RepositoryCloner

# Module-level console instance (will be set by register function)
console: Console = Console()


def run_clone(
    config: StackupConfig,
    runner: CommandRunner,
    parallel: bool = False,
    force: bool = False,
) -> bool:
    """Clone every repository in repositories.conf. Returns False if any failed."""
    from stackup.cli_support import print_error, print_header, print_info, print_success, print_warning

    if not check_network(runner):
        print_error(console, "No network connectivity detected")
        print_info(console, "Cloning needs internet access to reach GitHub")
        return False

    print_header(console, "Loading Repository Configuration")
    try:
        repo_list = load_repositories(config.repositories_file)
    except ConfigFileError as e:
        print_error(console, str(e))
        return False

    for invalid in repo_list.invalid:
        print_warning(console, f"Skipping invalid config line {invalid.line_number}: {invalid.error}")
    if not repo_list.repositories:
        print_error(console, f"No valid repositories in {config.repositories_file}")
        return False
    print_success(console, f"Found {len(repo_list.repositories)} repositories to clone")

    mode = "Parallel" if parallel else "Sequential"
    print_header(console, f"Cloning Repositories ({mode} Mode)")
    cloner = RepositoryCloner(runner, config)
    summary = cloner.clone_all(repo_list.repositories, parallel=parallel, force=force)

    for result in summary.results:
        name = result.repository.name
        if result.status is CloneStatus.CLONED:
            print_success(console, f"{name} cloned successfully")
        elif result.status is CloneStatus.SKIPPED:
            print_warning(console, f"{name}: directory already exists (skipped)")
        else:
            print_error(console, f"Failed to clone {name}")
            print_info(console, f"See log: {result.log_file}")

    print_header(console, "Verifying Cloned Repositories")
    checks = cloner.verify_all(repo_list.repositories)
    for check in checks:
        name = check.repository.name
        if check.ok:
            print_success(console, f"{name} (branch: {check.repository.branch})")
        elif check.current_branch:
            print_warning(
                console,
                f"{name}: branch mismatch (expected: {check.repository.branch}, got: {check.current_branch})",
            )
        else:
            print_error(console, f"{name}: not found or not a git repository")
    verified = sum(1 for c in checks if c.ok)
    print_info(console, f"Verification: {verified} verified, {len(checks) - verified} failed")

    print_header(console, "Cloning Summary")
    console.print(f"Total repositories: {len(summary.results)}")
    console.print(f"[green]Cloned: {summary.cloned}[/green]")
    console.print(f"[yellow]Skipped: {summary.skipped}[/yellow]")
    console.print(f"[red]Failed: {summary.failed}[/red]")

    if summary.failed:
        print_warning(console, "Some repositories failed to clone")
        print_info(console, f"Check logs in {config.log_dir}/clone_*.log for details")
        return False

    print_success(console, "All repositories cloned successfully!")
    return True


def clone(
    parallel: bool = typer.Option(False, "--parallel", "-p", help="Clone repositories concurrently"),
    force: bool = typer.Option(False, "--force", "-f", help="Remove existing directories and clone again"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory with repositories.conf/services.conf"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Clone the service repositories listed in repositories.conf."""
    from stackup.cli_support import get_runner, load_config, setup_file_logging

    setup_file_logging(log_file=log_file, verbose=verbose)
    config = load_config(config_dir)

    if not run_clone(config, get_runner(), parallel=parallel, force=force):
        raise typer.Exit(1)

    console.print("\n[cyan]Next step:[/cyan] stackup deploy --setup-env")


def register_clone_commands(app: typer.Typer, shared_console: Console):
    """Register the clone command with the main Typer app."""
    global console
    console = shared_console

    app.command()(clone)
