"""Shared test fixtures for stackup tests."""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from stackup.core.config import StackupConfig, set_config
from stackup.core.logger import reset_file_logging
from stackup.core.runner import CommandResult, CommandRunner


@dataclass
class Call:
    args: List[str]
    cwd: Optional[Path] = None
    log_file: Optional[Path] = None
    input: Optional[str] = None


class FakeRunner(CommandRunner):
    """CommandRunner that records calls and returns scripted results.

    Responses are keyed by a command prefix; the longest matching prefix
    wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, installed=(), mock: bool = False):
        super().__init__(mock=mock)
        self.calls: List[Call] = []
        self.responses: Dict[Tuple[str, ...], Tuple[int, str, str]] = {}
        self.installed = set(installed)

    def respond(self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses[tuple(prefix)] = (returncode, stdout, stderr)

    def run(self, args, cwd=None, timeout=None, log_file=None, input=None) -> CommandResult:
        argv = [str(a) for a in args]
        self.calls.append(Call(argv, cwd, log_file, input))

        returncode, stdout, stderr = 0, "", ""
        best = -1
        for prefix, response in self.responses.items():
            if tuple(argv[:len(prefix)]) == prefix and len(prefix) > best:
                best = len(prefix)
                returncode, stdout, stderr = response

        result = CommandResult(argv, returncode, stdout, stderr)
        if log_file is not None:
            result.log_file = log_file
            self._write_log(Path(log_file), " ".join(argv), result)
        return result

    def which(self, name: str) -> Optional[str]:
        return f"/usr/bin/{name}" if name in self.installed else None

    def commands(self) -> List[List[str]]:
        return [call.args for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(tuple(args[:len(prefix)]) == prefix for args in self.commands())


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    """FakeRunner factory, e.g. make_runner(installed={"docker-compose"})."""
    return FakeRunner


@pytest.fixture
def config(tmp_path):
    """StackupConfig rooted in tmp_path with a fast health poll."""
    cfg = StackupConfig(
        config_dir=tmp_path / "config",
        github_dir=tmp_path / "github",
        deployment_dir=tmp_path / "deployment",
        log_dir=tmp_path / "logs",
        health_attempts=3,
        health_interval=0,
        stabilize_delay=0,
    )
    cfg.config_dir.mkdir()
    return cfg


@pytest.fixture(autouse=True)
def reset_globals():
    """Keep global config and file logging from leaking between tests."""
    yield
    set_config(None)
    reset_file_logging()


def write_services_conf(config: StackupConfig, services: List[Tuple[str, int, Path]]) -> Path:
    lines = ["# name port directory health"]
    lines += [f"{name} {port} {directory} /health" for name, port, directory in services]
    config.services_file.write_text("\n".join(lines) + "\n")
    return config.services_file


@pytest.fixture
def two_services(config, tmp_path):
    """services.conf with two services whose checkouts exist."""
    dirs = []
    for name in ("user-info", "user-posts"):
        directory = tmp_path / "github" / name
        directory.mkdir(parents=True)
        dirs.append(directory)
    write_services_conf(config, [("user-info", 8082, dirs[0]), ("user-posts", 8083, dirs[1])])
    return dirs


@pytest.fixture
def templates(config):
    """Both env templates, one per naming convention."""
    config.template_for("production").write_text(
        "NODE_ENV=production\n"
        "PORT=XXXX\n"
        "MONGO_URI=mongodb://placeholder\n"
        "MONGO_DB=production_database\n"
        "INTERNAL_API_KEY=CHANGE_ME\n"
        "EXTERNAL_API_KEY=CHANGE_ME\n"
    )
    config.template_for("test").write_text(
        "NODE_ENV=test\n"
        "PORT=XXXX\n"
        "MONGODB_URI=mongodb://localhost\n"
        "MONGODB_DATABASE=test_database\n"
        "API_MASTER_KEY=CHANGE_ME\n"
        "RAPIDAPI_KEY=CHANGE_ME\n"
    )
    return config
