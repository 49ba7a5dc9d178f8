"""Tests for server bootstrap."""
from unittest.mock import MagicMock

import pytest

from stackup.services import bootstrap
from stackup.services.bootstrap import (
    BootstrapError,
    ServerBootstrapper,
    first_version,
    parse_os_release,
)

UBUNTU_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.3 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
VERSION="22.04.3 LTS (Jammy Jellyfish)"
VERSION_CODENAME=jammy
ID=ubuntu
ID_LIKE=debian
"""


@pytest.fixture
def os_release(tmp_path):
    path = tmp_path / "os-release"
    path.write_text(UBUNTU_RELEASE)
    return path


def make_bootstrapper(runner, config, os_release, dry_run=False):
    return ServerBootstrapper(runner, config, dry_run=dry_run, os_release=os_release, system_platform="linux")


class TestOSDetection:

    def test_parse_os_release(self):
        values = parse_os_release(UBUNTU_RELEASE + "# comment\n\n")
        assert values["ID"] == "ubuntu"
        assert values["PRETTY_NAME"] == "Ubuntu 22.04.3 LTS"

    def test_detect_ubuntu(self, runner, config, os_release):
        info = make_bootstrapper(runner, config, os_release).detect_os()

        assert (info.id, info.version, info.codename) == ("ubuntu", "22.04", "jammy")
        assert info.name == "Ubuntu 22.04.3 LTS"
        assert not info.is_macos

    def test_unsupported_distribution(self, runner, config, tmp_path):
        path = tmp_path / "os-release"
        path.write_text('ID=fedora\nVERSION_ID="39"\n')

        with pytest.raises(BootstrapError, match="fedora"):
            make_bootstrapper(runner, config, path).detect_os()

    def test_missing_os_release(self, runner, config, tmp_path):
        with pytest.raises(BootstrapError, match="Cannot detect OS"):
            make_bootstrapper(runner, config, tmp_path / "absent").detect_os()

    def test_macos(self, runner, config, tmp_path):
        runner.respond("sw_vers", stdout="14.2\n")
        boot = ServerBootstrapper(runner, config, system_platform="darwin")

        assert boot.os.is_macos
        assert boot.os.name == "macOS 14.2"

    @pytest.mark.parametrize("output,expected", [
        ("Docker version 24.0.7, build afdd53b", "24.0.7"),
        ("git version 2.43.0", "2.43.0"),
        ("Docker Compose version v2.24.1", "2.24.1"),
        ("weird", "weird"),
    ])
    def test_first_version(self, output, expected):
        assert first_version(output) == expected


class TestInstallSteps:

    def test_docker_already_installed(self, make_runner, config, os_release):
        runner = make_runner(installed={"docker"})
        runner.respond("docker", "--version", stdout="Docker version 24.0.7, build afdd53b\n")

        message = make_bootstrapper(runner, config, os_release).install_docker()

        assert message == "Docker already installed (version: 24.0.7)"
        assert not runner.ran("sudo")

    def test_docker_dry_run(self, runner, config, os_release):
        assert make_bootstrapper(runner, config, os_release, dry_run=True).install_docker() == "Would install Docker"
        assert runner.calls == []

    def test_docker_install_on_ubuntu(self, runner, config, os_release):
        runner.respond("dpkg", "--print-architecture", stdout="amd64\n")

        make_bootstrapper(runner, config, os_release).install_docker()

        tee = next(call for call in runner.calls if call.args[:2] == ["sudo", "tee"])
        assert tee.input == (
            "deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.gpg] "
            "https://download.docker.com/linux/ubuntu jammy stable\n"
        )
        assert runner.ran("sudo", "apt-get", "install", "-y", "docker-ce")
        assert runner.ran("sudo", "usermod", "-aG", "docker")

    def test_docker_install_step_failure(self, runner, config, os_release):
        runner.respond("sudo", "apt-get", "update", returncode=100, stderr="E: network down")

        with pytest.raises(BootstrapError, match="network down"):
            make_bootstrapper(runner, config, os_release).install_docker()

    def test_docker_on_macos_needs_desktop(self, runner, config):
        boot = ServerBootstrapper(runner, config, system_platform="darwin")
        with pytest.raises(BootstrapError, match="Docker Desktop"):
            boot.install_docker()

    def test_compose_plugin_counts_as_installed(self, make_runner, config, os_release):
        runner = make_runner(installed={"docker"})

        message = make_bootstrapper(runner, config, os_release).install_compose()

        assert "plugin" in message
        assert runner.commands() == [["docker", "compose", "version"]]

    def test_compose_standalone_install(self, runner, config, os_release, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"tag_name": "v2.24.1"}
        monkeypatch.setattr(bootstrap.requests, "get", MagicMock(return_value=response))
        monkeypatch.setattr(bootstrap.platform, "system", lambda: "Linux")
        monkeypatch.setattr(bootstrap.platform, "machine", lambda: "x86_64")

        message = make_bootstrapper(runner, config, os_release).install_compose()

        assert message.endswith("(version: v2.24.1)")
        assert runner.ran(
            "sudo", "curl", "-fsSL",
            "https://github.com/docker/compose/releases/download/v2.24.1/docker-compose-linux-x86_64",
        )
        assert runner.ran("sudo", "chmod", "+x", "/usr/local/bin/docker-compose")

    def test_install_tools_apt(self, runner, config, os_release):
        make_bootstrapper(runner, config, os_release).install_tools()
        assert runner.ran("sudo", "apt-get", "install", "-y", "curl", "wget", "jq", "net-tools")

    def test_install_tools_macos_without_brew(self, runner, config):
        boot = ServerBootstrapper(runner, config, system_platform="darwin")
        with pytest.raises(BootstrapError, match="Homebrew"):
            boot.install_tools()


class TestFirewallAndDirectories:

    def test_firewall_allows_ssh_and_service_ports(self, make_runner, config, os_release):
        runner = make_runner(installed={"ufw"})

        message = make_bootstrapper(runner, config, os_release).configure_firewall([8082, 8083])

        assert message == "Firewall configured for ports: 8082, 8083"
        assert runner.commands() == [
            ["sudo", "ufw", "allow", "22/tcp"],
            ["sudo", "ufw", "allow", "8082/tcp"],
            ["sudo", "ufw", "allow", "8083/tcp"],
        ]

    def test_firewall_without_ufw(self, runner, config, os_release):
        assert "skipped" in make_bootstrapper(runner, config, os_release).configure_firewall([8082])
        assert runner.calls == []

    def test_firewall_dry_run(self, make_runner, config, os_release):
        runner = make_runner(installed={"ufw"})
        boot = make_bootstrapper(runner, config, os_release, dry_run=True)

        assert boot.configure_firewall([8082]) == "Would configure firewall ports: 8082"
        assert runner.calls == []

    def test_setup_directories(self, runner, config, os_release):
        created = make_bootstrapper(runner, config, os_release).setup_directories()
        assert all(directory.is_dir() for directory in created)

    def test_setup_directories_dry_run(self, runner, config, os_release):
        make_bootstrapper(runner, config, os_release, dry_run=True).setup_directories()
        assert not config.github_dir.exists()

    def test_system_info(self, make_runner, config, os_release):
        runner = make_runner(installed={"docker", "git"})
        runner.respond("docker", "--version", stdout="Docker version 24.0.7, build x\n")
        runner.respond("docker", "compose", "version", stdout="Docker Compose version v2.24.1\n")
        runner.respond("git", "--version", stdout="git version 2.43.0\n")

        info = make_bootstrapper(runner, config, os_release).system_info()

        assert info == {
            "OS": "Ubuntu 22.04.3 LTS",
            "Docker": "24.0.7",
            "Git": "2.43.0",
            "Docker Compose": "2.24.1",
        }
