"""Server bootstrap: OS detection and installation of docker, compose, git and tools.

Supports Ubuntu/Debian (apt) and macOS (Docker Desktop, Homebrew). Every
install step first checks whether the tool is already present, so a
bootstrap can be re-run safely.
"""
import getpass
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import requests

from stackup.core.config import StackupConfig
from stackup.core.logger import get_logger
from stackup.core.runner import CommandResult, CommandRunner

logger = get_logger(__name__)

SUPPORTED_LINUX = ("ubuntu", "debian")
COMPOSE_RELEASES_API = "https://api.github.com/repos/docker/compose/releases/latest"
COMPOSE_DOWNLOAD_URL = "https://github.com/docker/compose/releases/download/{version}/docker-compose-{system}-{machine}"
COMPOSE_BINARY = "/usr/local/bin/docker-compose"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
DOCKER_SOURCES = "/etc/apt/sources.list.d/docker.list"

EXTRA_TOOLS_APT = ["curl", "wget", "jq", "net-tools"]
EXTRA_TOOLS_BREW = ["curl", "wget", "jq"]
SSH_PORT = 22


class BootstrapError(Exception):
    """Raised when a bootstrap step cannot complete."""
    pass


@dataclass
class OSInfo:
    id: str
    version: str
    name: str
    codename: str = ""

    @property
    def is_macos(self) -> bool:
        return self.id == "macos"


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse /etc/os-release KEY=value lines (values may be quoted)."""
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key] = value.strip().strip('"').strip("'")
    return values


def first_version(output: str) -> str:
    """Pull '24.0.7' out of 'Docker version 24.0.7, build afdd53b'."""
    for word in output.replace(",", " ").split():
        candidate = word.lstrip("v")
        if candidate[:1].isdigit() and "." in candidate:
            return candidate
    return output.strip() or "unknown"


class ServerBootstrapper:
    """Prepares a fresh server for deployment.

    Args:
        runner: Command runner (sudo/apt-get/brew/ufw)
        config: Runtime configuration (deployment and github directories)
        dry_run: Report what would happen without changing anything
        os_release: Path of the os-release file (Linux)
        system_platform: sys.platform value, injectable for tests
    """

    def __init__(
        self,
        runner: CommandRunner,
        config: StackupConfig,
        dry_run: bool = False,
        os_release: Path = Path("/etc/os-release"),
        system_platform: Optional[str] = None,
    ):
        self.runner = runner
        self.config = config
        self.dry_run = dry_run
        self.os_release = Path(os_release)
        self.system_platform = system_platform or sys.platform
        self._os: Optional[OSInfo] = None

    @property
    def os(self) -> OSInfo:
        if self._os is None:
            self._os = self.detect_os()
        return self._os

    def detect_os(self) -> OSInfo:
        """Identify the host OS.

        Raises:
            BootstrapError: If the OS is not Ubuntu, Debian or macOS
        """
        if self.system_platform.startswith("darwin"):
            result = self.runner.run(["sw_vers", "-productVersion"])
            version = result.stdout.strip() if result.ok else ""
            return OSInfo("macos", version, f"macOS {version}".strip())

        if not self.os_release.exists():
            raise BootstrapError("Cannot detect OS. Only Ubuntu/Debian/macOS are supported.")

        values = parse_os_release(self.os_release.read_text(encoding="utf-8"))
        os_id = values.get("ID", "")
        if os_id not in SUPPORTED_LINUX:
            raise BootstrapError(f"Only Ubuntu/Debian/macOS are supported. Detected: {os_id or 'unknown'}")
        return OSInfo(
            id=os_id,
            version=values.get("VERSION_ID", ""),
            name=values.get("PRETTY_NAME") or f"{values.get('NAME', os_id)} {values.get('VERSION', '')}".strip(),
            codename=values.get("VERSION_CODENAME", ""),
        )

    def check_sudo(self) -> bool:
        """True if privileged commands can run without a password prompt."""
        if self.os.is_macos:
            result = self.runner.run(["groups"])
            return "admin" in result.stdout.split()
        return self.runner.run(["sudo", "-n", "true"]).ok

    def _require(self, result: CommandResult, what: str) -> CommandResult:
        if not result.ok:
            raise BootstrapError(f"{what} failed: {result.output or f'exit code {result.returncode}'}")
        return result

    def _sudo(self, *args: str) -> CommandResult:
        return self._require(self.runner.run(["sudo", *args]), " ".join(args[:3]))

    def _tool_version(self, *args: str) -> Optional[str]:
        if not self.runner.which(args[0]):
            return None
        result = self.runner.run(list(args))
        return first_version(result.stdout) if result.ok else "unknown"

    def install_docker(self) -> str:
        version = self._tool_version("docker", "--version")
        if version:
            return f"Docker already installed (version: {version})"
        if self.dry_run:
            return "Would install Docker"

        if self.os.is_macos:
            raise BootstrapError(
                "Docker Desktop is required on macOS. Install it from "
                "https://www.docker.com/products/docker-desktop and re-run bootstrap."
            )

        logger.info("Installing Docker...")
        # Old distro packages conflict with docker-ce; absent ones are fine
        self.runner.run(["sudo", "apt-get", "remove", "-y", "docker", "docker-engine", "docker.io", "containerd", "runc"])
        self._sudo("apt-get", "update")
        self._sudo("apt-get", "install", "-y", "ca-certificates", "curl", "gnupg", "lsb-release")
        self._sudo("mkdir", "-p", str(Path(DOCKER_KEYRING).parent))
        self._require(
            self.runner.shell(
                f"curl -fsSL https://download.docker.com/linux/{self.os.id}/gpg "
                f"| sudo gpg --dearmor --yes -o {DOCKER_KEYRING}"
            ),
            "Adding Docker GPG key",
        )

        arch = self._require(self.runner.run(["dpkg", "--print-architecture"]), "dpkg").stdout.strip()
        codename = self.os.codename or self._require(
            self.runner.run(["lsb_release", "-cs"]), "lsb_release"
        ).stdout.strip()
        source = (
            f"deb [arch={arch} signed-by={DOCKER_KEYRING}] "
            f"https://download.docker.com/linux/{self.os.id} {codename} stable\n"
        )
        self._require(
            self.runner.run(["sudo", "tee", DOCKER_SOURCES], input=source),
            "Adding Docker apt repository",
        )

        self._sudo("apt-get", "update")
        self._sudo(
            "apt-get", "install", "-y",
            "docker-ce", "docker-ce-cli", "containerd.io", "docker-buildx-plugin", "docker-compose-plugin",
        )
        self._sudo("usermod", "-aG", "docker", getpass.getuser())
        logger.warning("You may need to log out and back in for docker group membership to take effect")
        return "Docker installed successfully"

    def latest_compose_version(self, timeout: float = 10) -> str:
        """Tag of the latest docker/compose release on GitHub."""
        try:
            response = requests.get(COMPOSE_RELEASES_API, timeout=timeout)
            response.raise_for_status()
            tag = response.json().get("tag_name")
        except (requests.RequestException, ValueError) as e:
            raise BootstrapError(f"Could not look up the latest Docker Compose release: {e}") from e
        if not tag:
            raise BootstrapError("GitHub releases API returned no tag_name for docker/compose")
        return tag

    def install_compose(self) -> str:
        version = self._tool_version("docker-compose", "--version")
        if version:
            return f"Docker Compose already installed (version: {version})"
        if self.runner.which("docker") and self.runner.run(["docker", "compose", "version"]).ok:
            return "Docker Compose plugin available (docker compose)"
        if self.dry_run:
            return "Would install Docker Compose"
        if self.os.is_macos:
            return "Docker Compose is included in Docker Desktop"

        tag = self.latest_compose_version()
        url = COMPOSE_DOWNLOAD_URL.format(
            version=tag, system=platform.system().lower(), machine=platform.machine()
        )
        logger.info(f"Downloading Docker Compose {tag}...")
        self._sudo("curl", "-fsSL", url, "-o", COMPOSE_BINARY)
        self._sudo("chmod", "+x", COMPOSE_BINARY)
        return f"Docker Compose installed successfully (version: {tag})"

    def install_git(self) -> str:
        version = self._tool_version("git", "--version")
        if version:
            return f"Git already installed (version: {version})"
        if self.dry_run:
            return "Would install Git"

        if self.os.is_macos:
            self.runner.run(["xcode-select", "--install"])
            raise BootstrapError(
                "Git comes with the Xcode Command Line Tools. Finish their installation, then re-run bootstrap."
            )

        self._sudo("apt-get", "update")
        self._sudo("apt-get", "install", "-y", "git")
        return "Git installed successfully"

    def install_tools(self) -> str:
        tools = EXTRA_TOOLS_BREW if self.os.is_macos else EXTRA_TOOLS_APT
        if self.dry_run:
            return f"Would install: {', '.join(tools)}"

        if self.os.is_macos:
            if not self.runner.which("brew"):
                raise BootstrapError("Homebrew is not installed; see https://brew.sh")
            self._require(self.runner.run(["brew", "install", *tools]), "brew install")
        else:
            self._sudo("apt-get", "update")
            self._sudo("apt-get", "install", "-y", *tools)
        return f"Additional tools installed: {', '.join(tools)}"

    def configure_firewall(self, ports: Sequence[int]) -> str:
        """Allow SSH and the service ports through ufw, when ufw is present."""
        if self.os.is_macos:
            return "Firewall configuration not required for macOS"
        if not self.runner.which("ufw"):
            logger.warning("UFW not installed, skipping firewall configuration")
            return "UFW not installed, skipped"

        port_list = ", ".join(str(p) for p in ports)
        if self.dry_run:
            return f"Would configure firewall ports: {port_list}"

        for port in [SSH_PORT, *ports]:
            result = self.runner.run(["sudo", "ufw", "allow", f"{port}/tcp"])
            if not result.ok:
                logger.warning(f"ufw allow {port}/tcp failed: {result.output}")
        return f"Firewall configured for ports: {port_list}"

    def setup_directories(self) -> List[Path]:
        directories = [
            self.config.deployment_dir,
            self.config.deployment_dir / "config",
            self.config.github_dir,
        ]
        if self.dry_run:
            logger.info(f"Would create: {', '.join(str(d) for d in directories)}")
            return directories
        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
        return directories

    def in_docker_group(self) -> bool:
        return "docker" in self.runner.run(["groups"]).stdout.split()

    def system_info(self) -> Dict[str, str]:
        """Versions of everything bootstrap cares about."""
        info = {
            "OS": self.os.name,
            "Docker": self._tool_version("docker", "--version") or "not installed",
            "Git": self._tool_version("git", "--version") or "not installed",
        }
        compose = self._tool_version("docker-compose", "--version")
        if compose is None and self.runner.which("docker"):
            result = self.runner.run(["docker", "compose", "version"])
            compose = first_version(result.stdout) if result.ok else None
        info["Docker Compose"] = compose or "not installed"
        return info
