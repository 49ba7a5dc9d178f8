"""Docker Compose operations for one service checkout.

Each service repository carries its own docker-compose.yml; stackup only
drives `build`, `up -d`, `down` and `ps` inside that directory.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from stackup.core.logger import get_logger
from stackup.core.runner import CommandResult, CommandRunner

logger = get_logger(__name__)

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")


class ComposeFileError(Exception):
    """Raised when a compose file does not have the expected structure."""
    pass


@dataclass
class ComposeDefinition:
    """What a service's compose file declares."""

    path: Path
    services: List[str] = field(default_factory=list)
    published_ports: List[int] = field(default_factory=list)


def find_compose_file(directory: Path) -> Optional[Path]:
    for name in COMPOSE_FILES:
        candidate = Path(directory) / name
        if candidate.exists():
            return candidate
    return None


def _published_port(entry: Any) -> Optional[int]:
    """Host port of one `ports:` entry ("8082:8082", "127.0.0.1:8082:80", {published: 8082})."""
    if isinstance(entry, dict):
        published = entry.get("published")
        return int(published) if str(published or "").isdigit() else None

    parts = str(entry).split("/")[0].split(":")
    if len(parts) < 2:
        return None
    host = parts[-2]
    return int(host) if host.isdigit() else None


def load_definition(directory: Path) -> Optional[ComposeDefinition]:
    """Parse the compose file in directory, or None if there is none.

    Raises:
        yaml.YAMLError: If the compose file is not valid YAML
        ComposeFileError: If the document, `services:` or a service body is not a mapping
    """
    path = find_compose_file(directory)
    if path is None:
        return None

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ComposeFileError(f"{path.name}: top level must be a mapping")
    services = data.get("services") or {}
    if not isinstance(services, dict):
        raise ComposeFileError(f"{path.name}: 'services' must be a mapping")

    definition = ComposeDefinition(path=path)
    for name, spec in services.items():
        spec = spec or {}
        if not isinstance(spec, dict):
            raise ComposeFileError(f"{path.name}: service '{name}' must be a mapping")
        definition.services.append(str(name))
        ports = spec.get("ports") or []
        if not isinstance(ports, list):
            raise ComposeFileError(f"{path.name}: ports of '{name}' must be a list")
        for entry in ports:
            port = _published_port(entry)
            if port is not None:
                definition.published_ports.append(port)
    return definition


class ComposeProject:
    """Runs docker compose commands in a service directory.

    Args:
        directory: Service checkout containing the compose file
        runner: Command runner
        compose_cmd: Base command, e.g. ["docker-compose"] or ["docker", "compose"]
    """

    def __init__(self, directory: Path, runner: CommandRunner, compose_cmd: Optional[List[str]] = None):
        self.directory = Path(directory)
        self.runner = runner
        self.compose_cmd = list(compose_cmd or detect_compose_command(runner))

    def _compose(self, *args: str, log_file: Optional[Path] = None) -> CommandResult:
        return self.runner.run([*self.compose_cmd, *args], cwd=self.directory, log_file=log_file)

    def build(self, log_file: Optional[Path] = None) -> CommandResult:
        return self._compose("build", log_file=log_file)

    def up(self, log_file: Optional[Path] = None) -> CommandResult:
        return self._compose("up", "-d", log_file=log_file)

    def down(self) -> CommandResult:
        return self._compose("down")

    def container_ids(self) -> List[str]:
        """IDs of this project's containers (`compose ps -q`)."""
        result = self._compose("ps", "-q")
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def inspect(self, container_id: str, template: str) -> Optional[str]:
        """Return `docker inspect -f <template>` for a container, or None."""
        result = self.runner.run(["docker", "inspect", "-f", template, container_id])
        if not result.ok:
            return None
        value = result.stdout.strip()
        return value or None


def detect_compose_command(runner: CommandRunner) -> List[str]:
    """Prefer the standalone docker-compose binary, else the docker plugin."""
    if runner.which("docker-compose"):
        return ["docker-compose"]
    return ["docker", "compose"]
