"""Loader for the whitespace-separated record files in the config directory.

repositories.conf:  GIT_URL BRANCH TARGET_DIR
services.conf:      SERVICE_NAME PORT DIRECTORY HEALTH_ENDPOINT

Lines starting with '#' and blank lines are ignored.
"""
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from jinja2 import Environment, BaseLoader
from pydantic import ValidationError

from stackup.core.logger import get_logger
from stackup.models.records import RepositorySpec, ServiceSpec

logger = get_logger(__name__)

PLACEHOLDER_OWNER = "YOUR_GITHUB_USERNAME"
OWNER_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

SERVICES_CONF_TEMPLATE = """\
# =============================================================================
# Service Configuration
# =============================================================================
# Format: SERVICE_NAME PORT DIRECTORY HEALTH_ENDPOINT
#
# This file was auto-generated by stackup deploy --setup-env
# Generated at: {{ generated_at }}
# =============================================================================

{% for service in services -%}
{{ service.name }} {{ service.port }} {{ service.directory }} {{ service.health_path }}
{% endfor %}"""

_jinja = Environment(loader=BaseLoader(), keep_trailing_newline=True)


class ConfigFileError(Exception):
    """Raised when a config file is missing or malformed."""
    pass


@dataclass
class InvalidRecord:
    """A record that failed validation and was skipped."""
    line_number: int
    line: str
    error: str


@dataclass
class RepositoryList:
    repositories: List[RepositorySpec] = field(default_factory=list)
    invalid: List[InvalidRecord] = field(default_factory=list)


def iter_records(path: Path) -> Iterator[Tuple[int, List[str]]]:
    """Yield (line_number, fields) for every non-comment, non-blank line."""
    path = Path(path)
    if not path.exists():
        raise ConfigFileError(
            f"Configuration file not found: {path} (set --config-dir or STACKUP_CONFIG_DIR)"
        )

    with open(path, encoding="utf-8") as f:
        for number, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            yield number, stripped.split()


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0].get("msg", str(exc)).removeprefix("Value error, ")


def load_repositories(path: Path) -> RepositoryList:
    """Parse repositories.conf.

    Invalid records are collected rather than raised so the remaining
    repositories can still be cloned.

    Raises:
        ConfigFileError: If the file is missing or has no records at all
    """
    result = RepositoryList()
    for number, fields in iter_records(path):
        raw = " ".join(fields)
        if len(fields) < 3:
            result.invalid.append(InvalidRecord(number, raw, "expected: REPO_URL BRANCH TARGET_DIR"))
            continue
        url, branch, target_dir = fields[:3]
        try:
            result.repositories.append(RepositorySpec(url=url, branch=branch, target_dir=target_dir))
        except ValidationError as e:
            result.invalid.append(InvalidRecord(number, raw, _first_error(e)))

    if not result.repositories and not result.invalid:
        raise ConfigFileError(f"No repositories configured in {path}")
    return result


def load_services(path: Path) -> List[ServiceSpec]:
    """Parse services.conf.

    Raises:
        ConfigFileError: If the file is missing, empty, or a record is malformed
    """
    services: List[ServiceSpec] = []
    for number, fields in iter_records(path):
        if len(fields) < 3:
            raise ConfigFileError(
                f"{path}:{number}: expected SERVICE_NAME PORT DIRECTORY [HEALTH_ENDPOINT]"
            )
        name, port, directory = fields[:3]
        health_path = fields[3] if len(fields) > 3 else "/health"
        try:
            services.append(
                ServiceSpec(name=name, port=port, directory=directory, health_path=health_path)
            )
        except ValidationError as e:
            raise ConfigFileError(f"{path}:{number}: {_first_error(e)}") from e

    if not services:
        raise ConfigFileError(f"No services configured in {path}")
    return services


def select_services(services: Sequence[ServiceSpec], name: Optional[str]) -> List[ServiceSpec]:
    """Filter to one service by name, or return all when name is None.

    Raises:
        ConfigFileError: If name does not match any service
    """
    if not name:
        return list(services)
    selected = [s for s in services if s.name == name]
    if not selected:
        known = ", ".join(s.name for s in services)
        raise ConfigFileError(f"Service not found: {name} (known: {known})")
    return selected


def write_services(path: Path, services: Sequence[ServiceSpec], backup: bool = True) -> Optional[Path]:
    """Rewrite services.conf from records, keeping a .backup of the old file.

    Returns:
        Path of the backup file, if one was made
    """
    path = Path(path)
    backup_path = None
    if backup and path.exists():
        backup_path = path.with_name(path.name + ".backup")
        shutil.copy2(path, backup_path)

    content = _jinja.from_string(SERVICES_CONF_TEMPLATE).render(
        services=services,
        generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.debug(f"Wrote {len(services)} service(s) to {path}")
    return backup_path


def has_placeholder_owner(path: Path) -> bool:
    """True if repositories.conf still contains the GitHub owner placeholder."""
    try:
        return PLACEHOLDER_OWNER in Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return False


def replace_placeholder_owner(path: Path, owner: str) -> int:
    """Substitute the GitHub owner placeholder in repositories.conf.

    The owner is inserted literally; it is validated first so it cannot
    smuggle in path separators or shell metacharacters.

    Returns:
        Number of placeholders replaced

    Raises:
        ValueError: If owner is empty or has characters outside [A-Za-z0-9_-]
    """
    if not owner:
        raise ValueError("GitHub username is required")
    if not OWNER_PATTERN.match(owner):
        raise ValueError(
            "Invalid GitHub username format. "
            "Username can only contain: letters, numbers, dash (-), underscore (_)"
        )

    path = Path(path)
    with open(path, encoding="utf-8", newline="") as f:
        content = f.read()
    count = content.count(PLACEHOLDER_OWNER)
    if count:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content.replace(PLACEHOLDER_OWNER, owner))
    return count
