"""Resume cache for interactive environment setup.

Answers are stored as KEY=value lines, one per field, and written the moment
they are given so an interrupted setup can pick up where it stopped.
"""
import os
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from stackup.core.logger import get_logger

logger = get_logger(__name__)


class SetupCache:
    """Flat key=value store for previously entered setup answers.

    The store is injected into the setup wizard rather than read from a
    module global, so tests and callers control exactly which file is used.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._values: Optional[Dict[str, str]] = None

    def load(self) -> Dict[str, str]:
        """Read the cache file. Missing file means an empty cache."""
        values: Dict[str, str] = {}
        try:
            with open(self.path, encoding="utf-8", newline="") as f:
                for line in f:
                    line = line.rstrip("\r\n")
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not read setup cache {self.path}: {e}")

        self._values = values
        return dict(values)

    @property
    def values(self) -> Dict[str, str]:
        if self._values is None:
            self.load()
        return dict(self._values)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Record one answer and persist the whole cache immediately."""
        self.update({key: value})

    def update(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            if "=" in key or not key.strip():
                raise ValueError(f"Invalid cache key: {key!r}")
            if "\n" in value or "\r" in value:
                raise ValueError(f"Cache value for {key} must be a single line")
        current = self.values
        current.update(values)
        self._write(current)
        self._values = current

    def clear(self) -> None:
        """Forget all answers and remove the cache file."""
        self.path.unlink(missing_ok=True)
        self._values = {}
        logger.debug(f"Cleared setup cache {self.path}")

    def is_complete(self, required: Iterable[str]) -> bool:
        values = self.values
        return all(values.get(key) for key in required)

    def _write(self, values: Mapping[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write atomically (write to temp, then rename); secrets inside
        temp_file = self.path.with_name(self.path.name + ".tmp")
        fd = os.open(temp_file, os.O_CREAT | os.O_TRUNC | os.O_WRONLY, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write("# stackup setup answers - safe to delete\n")
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        os.chmod(temp_file, 0o600)
        os.replace(temp_file, self.path)
