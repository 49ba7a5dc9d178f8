"""Snapshot tests for CLI help output."""
import pytest
from typer.testing import CliRunner

from stackup.cli import app

runner = CliRunner()


class TestMainHelp:
    """Test main CLI help output."""

    def test_main_help(self):
        """Main help shows the description, quick start and every command."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        output = result.stdout

        assert "stackup - Server bootstrap and service deployment" in output

        # Quick start guide
        assert "--setup-env" in output
        assert "--watch" in output

        for command in ("start", "bootstrap", "github", "clone", "deploy", "health"):
            assert command in output


class TestCommandHelp:
    """Each command documents its options."""

    @pytest.mark.parametrize("command,options", [
        ("start", ["--skip-bootstrap", "--skip-github", "--skip-clone", "--non-interactive", "--sequential"]),
        ("bootstrap", ["--dry-run", "--yes"]),
        ("github", ["--method", "--email"]),
        ("clone", ["--parallel", "--force"]),
        ("deploy", ["--parallel", "--setup-env", "--stop", "--restart", "--service"]),
        ("health", ["--json", "--watch", "--interval", "--service"]),
    ])
    def test_command_options(self, command, options):
        result = runner.invoke(app, [command, "--help"])

        assert result.exit_code == 0
        for option in options:
            assert option in result.stdout

    @pytest.mark.parametrize("command", ["clone", "deploy", "health", "start", "bootstrap"])
    def test_config_dir_option(self, command):
        result = runner.invoke(app, [command, "--help"])
        assert "--config-dir" in result.stdout
