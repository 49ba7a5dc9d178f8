"""Shared utilities for stackup CLI modules."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from stackup.core.config import StackupConfig, get_config, set_config
from stackup.core.runner import CommandRunner


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("STACKUP_MOCK") == "1"


def get_runner(mock: Optional[bool] = None) -> CommandRunner:
    """Return a CommandRunner with mock defaults."""
    if mock is None:
        mock = is_mock()
    return CommandRunner(mock=mock)


def load_config(config_dir: Optional[str] = None) -> StackupConfig:
    """Return the active configuration, pointed at config_dir if given."""
    config = get_config()
    if config_dir:
        config = config.with_config_dir(Path(config_dir).expanduser().resolve())
        set_config(config)
    return config


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging

    Returns:
        Path of the log file in use
    """
    from stackup.core.logger import setup_file_logging as _setup_file_logging
    return _setup_file_logging(log_file=log_file, verbose=verbose)


def confirm_action(message: str, yes_flag: bool = False, mock: bool = False) -> bool:
    """Prompt user for confirmation unless --yes or mock mode.

    Args:
        message: Confirmation message to display
        yes_flag: Skip prompt if True (from --yes flag)
        mock: Skip prompt if True (mock mode)

    Returns:
        True if confirmed, False otherwise
    """
    if yes_flag or mock:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_header(console: Console, title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(f"[bold blue]{'=' * 60}[/bold blue]")
    console.print(f"[bold blue]  {title}[/bold blue]")
    console.print(f"[bold blue]{'=' * 60}[/bold blue]")
    console.print()


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    """Print success message with consistent formatting.

    Args:
        console: Rich console for output
        message: Success message
        prefix: Prefix symbol (default: ✓)
    """
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    """Print error message with consistent formatting."""
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    """Print warning message with consistent formatting."""
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    """Print info message with consistent formatting."""
    console.print(f"[cyan]{prefix}[/cyan] {message}")
