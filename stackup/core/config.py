"""stackup runtime configuration and settings."""
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional


def _default_config_dir() -> Path:
    """./config when run from a checkout, else ~/.stackup/config."""
    local = Path.cwd() / "config"
    if local.is_dir():
        return local
    return Path.home() / ".stackup" / "config"


def _default_github_dir() -> Path:
    return Path.home() / "github"


def _default_log_dir() -> Path:
    return Path.home() / ".stackup" / "logs"


@dataclass
class StackupConfig:
    """Runtime configuration for stackup operations.

    Attributes:
        config_dir: Directory holding repositories.conf, services.conf and env templates
        github_dir: Parent directory for cloned service repositories
        deployment_dir: Directory bootstrap prepares for the deployment tooling
        log_dir: Directory for per-service build/start/clone logs
        health_attempts: Health poll attempts before giving up (default: 30)
        health_interval: Seconds between health poll attempts (default: 2)
        http_timeout: Timeout in seconds for one health request (default: 5)
        watch_interval: Refresh interval for `health --watch` (default: 5)
        stabilize_delay: Seconds `start` waits before the final health check (default: 10)
        required_disk_gb: Free space `start` requires (default: 5)
        max_workers: Thread pool size for parallel clone/deploy (default: 4)
    """

    config_dir: Path = field(default_factory=_default_config_dir)
    github_dir: Path = field(default_factory=_default_github_dir)
    deployment_dir: Path = field(default_factory=lambda: Path.home() / "deployment-automation")
    log_dir: Path = field(default_factory=_default_log_dir)

    health_attempts: int = 30
    health_interval: float = 2.0
    http_timeout: int = 5
    watch_interval: int = 5
    stabilize_delay: int = 10

    required_disk_gb: int = 5
    max_workers: int = 4

    @property
    def repositories_file(self) -> Path:
        return self.config_dir / "repositories.conf"

    @property
    def services_file(self) -> Path:
        return self.config_dir / "services.conf"

    @property
    def cache_file(self) -> Path:
        return self.config_dir / ".setup-cache"

    @property
    def lock_file(self) -> Path:
        return self.config_dir.parent / ".stackup.lock"

    def template_for(self, env_type: str) -> Path:
        """Return the env template path for 'production' or 'test'."""
        return self.config_dir / f".env.{env_type}.template"

    def with_config_dir(self, config_dir: Optional[str]) -> "StackupConfig":
        """Return a copy pointing at another config directory."""
        if not config_dir:
            return self
        return replace(self, config_dir=Path(config_dir).expanduser())

    @classmethod
    def from_env(cls) -> "StackupConfig":
        """Create config from environment variables.

        Environment variables:
            STACKUP_CONFIG_DIR: Directory holding the .conf files and templates
            STACKUP_GITHUB_DIR: Where service repositories are cloned
            STACKUP_LOG_DIR: Where build/start/clone logs are written
            STACKUP_HEALTH_ATTEMPTS: Health poll attempts
            STACKUP_HEALTH_INTERVAL: Seconds between health poll attempts
            STACKUP_HTTP_TIMEOUT: Health request timeout in seconds
            STACKUP_MAX_WORKERS: Thread pool size for parallel mode

        Returns:
            StackupConfig instance with values from environment or defaults
        """
        defaults = cls()
        paths = {}
        for name, var in (
            ("config_dir", "STACKUP_CONFIG_DIR"),
            ("github_dir", "STACKUP_GITHUB_DIR"),
            ("deployment_dir", "STACKUP_DEPLOYMENT_DIR"),
            ("log_dir", "STACKUP_LOG_DIR"),
        ):
            value = os.getenv(var)
            paths[name] = Path(value).expanduser() if value else getattr(defaults, name)

        return cls(
            **paths,
            health_attempts=int(os.getenv("STACKUP_HEALTH_ATTEMPTS", defaults.health_attempts)),
            health_interval=float(os.getenv("STACKUP_HEALTH_INTERVAL", defaults.health_interval)),
            http_timeout=int(os.getenv("STACKUP_HTTP_TIMEOUT", defaults.http_timeout)),
            watch_interval=int(os.getenv("STACKUP_WATCH_INTERVAL", defaults.watch_interval)),
            stabilize_delay=int(os.getenv("STACKUP_STABILIZE_DELAY", defaults.stabilize_delay)),
            required_disk_gb=int(os.getenv("STACKUP_REQUIRED_DISK_GB", defaults.required_disk_gb)),
            max_workers=int(os.getenv("STACKUP_MAX_WORKERS", defaults.max_workers)),
        )


# Global config instance (can be overridden)
_config: Optional[StackupConfig] = None


def get_config() -> StackupConfig:
    """Get the global stackup configuration.

    Returns:
        StackupConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = StackupConfig.from_env()
    return _config


def set_config(config: Optional[StackupConfig]):
    """Set the global stackup configuration.

    Args:
        config: StackupConfig instance to use globally, or None to re-read the environment
    """
    global _config
    _config = config


__all__ = ["StackupConfig", "get_config", "set_config"]
