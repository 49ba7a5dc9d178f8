"""External command execution.

Every call to apt-get, docker, git, ssh-keygen and friends goes through a
CommandRunner so services can be exercised in tests without touching the host.
"""
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from stackup.core.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    log_file: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout/stderr, as a user would see it in a terminal."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


@dataclass
class CommandRunner:
    """Runs external commands on the local host.

    Args:
        mock: If True, log the command and report success without running it
        env: Extra environment variables merged into os.environ for each call
    """

    mock: bool = False
    env: Dict[str, str] = field(default_factory=dict)

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        log_file: Optional[Path] = None,
        input: Optional[str] = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Command and arguments (never passed through a shell)
            cwd: Working directory
            timeout: Seconds before the command is killed
            log_file: If set, stdout and stderr are also written to this file
            input: Text sent to the command's stdin

        Returns:
            CommandResult; a missing binary yields returncode 127
        """
        argv = [str(a) for a in args]
        display = shlex.join(argv)

        if self.mock:
            logger.info(f"MOCK: Would run: {display}" + (f" (in {cwd})" if cwd else ""))
            return CommandResult(argv, 0, log_file=log_file)

        logger.debug(f"Running: {display}" + (f" (in {cwd})" if cwd else ""))
        env = {**os.environ, **self.env} if self.env else None

        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=input,
                env=env,
                check=False,
            )
            result = CommandResult(argv, completed.returncode, completed.stdout or "", completed.stderr or "")
        except FileNotFoundError:
            result = CommandResult(argv, 127, stderr=f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired as e:
            stdout = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            result = CommandResult(argv, 124, stdout, f"Timed out after {timeout}s")

        if log_file is not None:
            result.log_file = log_file
            self._write_log(log_file, display, result)

        if not result.ok:
            logger.debug(f"Command exited {result.returncode}: {display}")
        return result

    def which(self, name: str) -> Optional[str]:
        """Return the path of an executable, or None if it is not installed."""
        return shutil.which(name)

    def shell(self, script: str, cwd: Optional[Path] = None, log_file: Optional[Path] = None) -> CommandResult:
        """Run a short bash pipeline (used only where a pipe is unavoidable)."""
        return self.run(["bash", "-c", script], cwd=cwd, log_file=log_file)

    @staticmethod
    def _write_log(log_file: Path, display: str, result: CommandResult) -> None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"$ {display}\n")
                if result.stdout:
                    f.write(result.stdout)
                if result.stderr:
                    f.write(result.stderr)
                f.write(f"\n[exit code {result.returncode}]\n")
        except OSError as e:
            logger.warning(f"Could not write command log {log_file}: {e}")
