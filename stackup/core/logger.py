"""Unified logging for stackup with console and file output."""
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console()

# Log file configuration
LOG_DIR = Path.home() / ".stackup" / "logs"
LOG_FILE = LOG_DIR / "stackup.log"

_file_handler: Optional[logging.Handler] = None


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Set up file logging for stackup runs.

    Args:
        log_file: Path to log file (defaults to ~/.stackup/logs/stackup.log)
        verbose: Enable debug-level logging

    Returns:
        Path of the log file actually in use

    Note:
        Falls back to /tmp if the log directory is not writable.
        Calling it again is a no-op and returns the active path.
    """
    global _file_handler

    if _file_handler is not None:
        return Path(_file_handler.baseFilename)

    target_log_file = Path(log_file) if log_file else LOG_FILE

    try:
        target_log_file.parent.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        target_log_file = Path("/tmp/stackup.log")
        target_log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("stackup")
    file_handler = logging.FileHandler(target_log_file)
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(file_handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    _file_handler = file_handler
    root_logger.info(f"stackup logging initialized: {target_log_file}")
    return target_log_file


def reset_file_logging() -> None:
    """Detach the file handler installed by setup_file_logging()."""
    global _file_handler

    if _file_handler is None:
        return
    root_logger = logging.getLogger("stackup")
    root_logger.removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger instance with console output.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger with Rich console handler

    Note:
        File logging must be enabled separately via setup_file_logging()
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger
