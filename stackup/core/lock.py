"""Concurrent access locking for stackup runs.

Prevents two `stackup start` runs from overlapping. The lock is a plain
PID file: a lock whose recorded process is gone is treated as stale and
replaced.
"""
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from stackup.core.logger import get_logger

logger = get_logger(__name__)

# An empty lock file this young is a run that has created it but not yet written its PID
EMPTY_LOCK_GRACE = 5.0


class LockError(Exception):
    """Raised when unable to acquire lock."""
    pass


def pid_alive(pid: int) -> bool:
    """Return True if a process with this PID exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


class RunLock:
    """PID-file lock for preventing concurrent deployment runs."""

    def __init__(self, lock_file: Path):
        """Initialize lock.

        Args:
            lock_file: Path to the PID file
        """
        self.lock_file = Path(lock_file)
        self.acquired = False

    def acquire(self) -> bool:
        """Acquire the lock.

        Returns:
            True if lock acquired successfully

        Raises:
            LockError: If another live process holds the lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        info = read_lock_info(self.lock_file)
        if info is not None:
            pid = info['pid']
            if isinstance(pid, int) and pid_alive(pid):
                raise LockError(
                    f"Another stackup run is already in progress (PID: {pid}, since {info['time']}).\n"
                    f"If you're sure no other instance is running, remove: {self.lock_file}"
                )
            if pid == "unknown" and self._age() < EMPTY_LOCK_GRACE:
                raise LockError(
                    f"Another stackup run is starting up (lock file {self.lock_file} is being written).\n"
                    f"If you're sure no other instance is running, remove: {self.lock_file}"
                )
            logger.warning("Removing stale lock file from previous run")
            self.lock_file.unlink(missing_ok=True)

        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            # Lost a race with another run between the stale check and create
            info = read_lock_info(self.lock_file) or {'pid': 'unknown'}
            raise LockError(
                f"Another stackup run is already in progress (PID: {info['pid']}).\n"
                f"If you're sure no other instance is running, remove: {self.lock_file}"
            )

        with os.fdopen(fd, 'w') as f:
            f.write(f"{os.getpid()}\n")
            f.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")

        self.acquired = True
        logger.debug(f"Acquired lock: {self.lock_file}")
        return True

    def _age(self) -> float:
        """Seconds since the lock file was last modified."""
        try:
            return time.time() - self.lock_file.stat().st_mtime
        except FileNotFoundError:
            return EMPTY_LOCK_GRACE

    def release(self):
        """Release the lock if this process still owns it."""
        if not self.acquired:
            return
        self.acquired = False

        info = read_lock_info(self.lock_file)
        if info is None:
            return
        if info['pid'] != os.getpid():
            logger.warning(f"Lock file {self.lock_file} now belongs to PID {info['pid']}; leaving it")
            return

        try:
            self.lock_file.unlink()
            logger.debug(f"Released lock: {self.lock_file}")
        except OSError as e:
            logger.warning(f"Error removing lock file: {e}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def read_lock_info(lock_file: Path) -> Optional[dict]:
    """Read PID and timestamp from a lock file.

    Returns:
        Dict with 'pid' (int, or the raw text if unparseable) and 'time',
        or None if there is no lock file
    """
    try:
        lines = Path(lock_file).read_text().splitlines()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Error reading lock file {lock_file}: {e}")
        return {'pid': 'unknown', 'time': 'unknown'}

    raw_pid = lines[0].strip() if lines else ""
    try:
        pid = int(raw_pid)
    except ValueError:
        pid = raw_pid or 'unknown'
    return {
        'pid': pid,
        'time': lines[1].strip() if len(lines) >= 2 else 'unknown',
    }


@contextmanager
def run_lock(lock_file: Path):
    """Context manager wrapping a whole deployment run.

    Usage:
        with run_lock(config.lock_file):
            ...

    Raises:
        LockError: If unable to acquire lock
    """
    lock = RunLock(lock_file)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()
