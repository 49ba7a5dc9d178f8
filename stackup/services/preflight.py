"""Preflight checks run before touching the server: network and disk space."""
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from stackup.core.logger import get_logger
from stackup.core.runner import CommandRunner

logger = get_logger(__name__)

TEST_HOSTS = ("github.com", "8.8.8.8")
GB = 1024 ** 3


def check_network(runner: CommandRunner, hosts: Sequence[str] = TEST_HOSTS) -> bool:
    """True if any of the hosts answers a single ping."""
    for host in hosts:
        if runner.run(["ping", "-c", "1", "-W", "2", host], timeout=10).ok:
            logger.debug(f"Network check: {host} reachable")
            return True
    return False


@dataclass
class DiskCheck:
    path: Path
    required_gb: float
    available_gb: float

    @property
    def ok(self) -> bool:
        return self.available_gb >= self.required_gb


def check_disk_space(path: Path, required_gb: float = 5) -> DiskCheck:
    """Free space on the filesystem holding path (nearest existing parent)."""
    path = Path(path)
    existing = path
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    free = shutil.disk_usage(existing).free
    return DiskCheck(path=path, required_gb=required_gb, available_gb=round(free / GB, 1))
