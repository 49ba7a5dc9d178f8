"""Tests for CLI support utilities."""
from io import StringIO
from unittest.mock import patch

import pytest
import typer
from rich.console import Console

from stackup.cli_support import (
    confirm_action,
    get_runner,
    handle_cli_error,
    is_mock,
    load_config,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from stackup.core.config import get_config


class TestIsMock:
    """Test mock mode detection."""

    def test_mock_enabled(self, monkeypatch):
        """Should return True when STACKUP_MOCK=1."""
        monkeypatch.setenv("STACKUP_MOCK", "1")
        assert is_mock() is True
        assert get_runner().mock is True

    def test_mock_disabled(self, monkeypatch):
        """Should return False when STACKUP_MOCK is not set."""
        monkeypatch.delenv("STACKUP_MOCK", raising=False)
        assert is_mock() is False
        assert get_runner().mock is False

    def test_mock_other_value(self, monkeypatch):
        monkeypatch.setenv("STACKUP_MOCK", "0")
        assert is_mock() is False

    def test_explicit_mock_wins(self, monkeypatch):
        monkeypatch.delenv("STACKUP_MOCK", raising=False)
        assert get_runner(mock=True).mock is True


class TestLoadConfig:

    def test_config_dir_override_becomes_global(self, tmp_path):
        config = load_config(str(tmp_path / "conf"))

        assert config.config_dir == (tmp_path / "conf").resolve()
        assert config.services_file == (tmp_path / "conf").resolve() / "services.conf"
        assert get_config() is config

    def test_env_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STACKUP_CONFIG_DIR", str(tmp_path / "etc"))
        monkeypatch.setenv("STACKUP_HEALTH_ATTEMPTS", "7")

        config = load_config()

        assert config.config_dir == tmp_path / "etc"
        assert config.health_attempts == 7

    def test_default_uses_local_config_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("STACKUP_CONFIG_DIR", raising=False)
        (tmp_path / "config").mkdir()
        monkeypatch.chdir(tmp_path)

        assert load_config().config_dir == tmp_path / "config"

    def test_default_falls_back_to_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("STACKUP_CONFIG_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.chdir(tmp_path)

        assert load_config().config_dir == tmp_path / "home" / ".stackup" / "config"


class TestConfirmAction:
    """Test confirmation prompt helper."""

    def test_yes_flag_skips_prompt(self):
        assert confirm_action("Continue?", yes_flag=True) is True

    def test_mock_skips_prompt(self):
        assert confirm_action("Continue?", mock=True) is True

    @patch("stackup.cli_support.typer.confirm", return_value=False)
    def test_prompts_otherwise(self, mock_confirm):
        assert confirm_action("Continue?") is False
        mock_confirm.assert_called_once_with("Continue?")


class TestPrintHelpers:

    @pytest.fixture
    def console(self):
        return Console(file=StringIO(), width=120)

    @pytest.mark.parametrize("func,symbol", [
        (print_success, "✓"),
        (print_error, "✗"),
        (print_warning, "⚠"),
        (print_info, "ℹ"),
    ])
    def test_prefix(self, console, func, symbol):
        func(console, "Deployment finished")
        assert console.file.getvalue() == f"{symbol} Deployment finished\n"

    def test_handle_cli_error_exits(self, console):
        with pytest.raises(typer.Exit) as exc_info:
            handle_cli_error(ValueError("bad port"), console)

        assert exc_info.value.exit_code == 1
        assert "Error: bad port" in console.file.getvalue()
