"""GitHub authentication CLI command."""
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from stackup.core.runner import CommandRunner
from stackup.services.github_auth import GitHubAuthenticator, GitHubAuthError

# Module-level console instance (will be set by register function)
console: Console = Console()

METHODS = {"1": "ssh", "2": "pat"}


def _configure_identity(auth: GitHubAuthenticator, non_interactive: bool) -> Optional[str]:
    """Make sure git has a user.name/user.email. Returns the email."""
    from stackup.cli_support import print_info, print_success

    identity = auth.git_identity()
    if identity:
        name, email = identity
        print_success(console, "Git already configured:")
        print_info(console, f"  Name: {name}")
        print_info(console, f"  Email: {email}")
        if non_interactive or typer.confirm("Keep current configuration?", default=True):
            return email
    elif non_interactive:
        raise GitHubAuthError("Git user.name/user.email are not configured")

    name = typer.prompt("Name")
    email = typer.prompt("Email")
    auth.set_git_identity(name, email)
    print_success(console, "Git configured successfully")
    return email


def _setup_ssh(auth: GitHubAuthenticator, email: Optional[str], non_interactive: bool) -> None:
    from stackup.cli_support import print_header, print_info, print_success, print_warning

    print_header(console, "Setting Up SSH Key Authentication")

    generate = True
    if auth.has_ssh_key():
        print_warning(console, f"SSH key already exists at {auth.ssh_key_path}")
        generate = not non_interactive and typer.confirm("Generate a new key?", default=False)
        if not generate:
            print_info(console, "Using existing SSH key")

    if generate:
        if not email:
            email = typer.prompt("Enter email for SSH key")
        auth.generate_ssh_key(email)
        print_success(console, "SSH key generated successfully")

    if auth.ensure_ssh_config():
        print_success(console, "SSH configuration updated")
    else:
        print_warning(console, "GitHub SSH configuration already exists")

    print_header(console, "Add This SSH Key to GitHub")
    console.print(Panel(auth.public_key(), title=str(auth.ssh_key_path) + ".pub", expand=False))
    console.print("1. Open https://github.com/settings/keys")
    console.print("2. Click 'New SSH key', paste the key above and save")
    if not non_interactive:
        typer.prompt("Press Enter after adding the key to GitHub", default="", show_default=False)

    print_info(console, "Testing SSH connection to GitHub...")
    if auth.test_ssh_connection():
        print_success(console, "SSH connection to GitHub successful!")
    else:
        print_warning(console, "SSH connection test inconclusive (this is often normal)")
        print_info(console, "You can test manually with: ssh -T git@github.com")


def _setup_pat(auth: GitHubAuthenticator) -> None:
    from stackup.cli_support import print_header, print_info, print_success

    print_header(console, "Setting Up Personal Access Token (PAT)")
    print_info(console, "Create a token at: https://github.com/settings/tokens/new")
    print_info(console, "Required scope: 'repo' (full control of private repositories)")

    token = typer.prompt("Paste your GitHub Personal Access Token", hide_input=True)
    auth.configure_pat(token)
    print_success(console, "Git credentials configured")

    print_info(console, "Testing GitHub API access...")
    login = auth.verify_token(token)
    print_success(console, "GitHub API access successful!")
    print_info(console, f"  Authenticated as: {login}")


def run_github_setup(
    runner: CommandRunner,
    method: Optional[str] = None,
    email: Optional[str] = None,
    non_interactive: bool = False,
) -> bool:
    """Configure git identity and GitHub access. Returns False on failure."""
    from stackup.cli_support import print_error

    auth = GitHubAuthenticator(runner)
    try:
        identity_email = _configure_identity(auth, non_interactive)

        if method is None:
            if non_interactive:
                method = "ssh"
            else:
                console.print("1) SSH Key (recommended for servers)")
                console.print("2) Personal Access Token")
                choice = typer.prompt("Enter choice (1 or 2)").strip()
                method = METHODS.get(choice)
                if method is None:
                    print_error(console, f"Invalid choice: {choice}")
                    return False

        if method == "ssh":
            _setup_ssh(auth, email or identity_email, non_interactive)
        elif method == "pat":
            if non_interactive:
                print_error(console, "PAT setup needs a token and cannot run non-interactively")
                return False
            _setup_pat(auth)
        else:
            print_error(console, f"Invalid authentication method: {method}")
            return False
    except GitHubAuthError as e:
        print_error(console, str(e))
        return False
    return True


def github(
    method: Optional[str] = typer.Option(None, "--method", help="Authentication method: ssh or pat"),
    email: Optional[str] = typer.Option(None, "--email", help="Email for SSH key generation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Configure GitHub authentication (SSH key or personal access token)."""
    from stackup.cli_support import get_runner, print_header, print_success, setup_file_logging

    setup_file_logging(log_file=log_file, verbose=verbose)
    print_header(console, "GitHub Authentication Setup")

    if not run_github_setup(get_runner(), method=method, email=email):
        raise typer.Exit(1)

    print_success(console, "GitHub authentication configured successfully")
    console.print("\n[cyan]Next step:[/cyan] stackup clone")


def register_github_commands(app: typer.Typer, shared_console: Console):
    """Register the github command with the main Typer app."""
    global console
    console = shared_console

    app.command()(github)
