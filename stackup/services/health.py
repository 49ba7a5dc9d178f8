"""Service health checks: TCP port, HTTP endpoint, container state, uptime."""
import socket
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import requests

from stackup.core.logger import get_logger
from stackup.core.runner import CommandRunner
from stackup.models.records import ServiceSpec
from stackup.services.compose import ComposeProject

logger = get_logger(__name__)

HEALTH_ATTEMPTS = 30
HEALTH_INTERVAL = 2.0
HTTP_TIMEOUT = 5

STATUS_HEALTHY = "healthy"
STATUS_STARTING = "starting"
STATUS_UNHEALTHY = "unhealthy"


def check_port_listening(port: int, host: str = "localhost", timeout: float = 1.0) -> bool:
    """True if something accepts TCP connections on host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def check_http_endpoint(url: str, timeout: float = HTTP_TIMEOUT) -> bool:
    """True if a GET on url answers with a 2xx status."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.debug(f"GET {url} failed: {e}")
        return False
    return 200 <= response.status_code < 300


def wait_for_health(
    port: int,
    path: str = "/health",
    attempts: int = HEALTH_ATTEMPTS,
    interval: float = HEALTH_INTERVAL,
    timeout: float = HTTP_TIMEOUT,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> bool:
    """Poll http://localhost:<port><path> until it returns 2xx.

    Fixed cadence, no backoff: up to `attempts` requests with `interval`
    seconds between consecutive ones.

    Returns:
        True on the first 2xx, False once all attempts failed
    """
    url = f"http://localhost:{port}{path}"
    for attempt in range(1, attempts + 1):
        if check_http_endpoint(url, timeout=timeout):
            logger.debug(f"{url} healthy after {attempt} attempt(s)")
            return True
        if on_attempt is not None:
            on_attempt(attempt)
        if attempt < attempts:
            sleep(interval)

    logger.debug(f"{url} not healthy after {attempts} attempts")
    return False


def format_uptime(seconds: Optional[int]) -> str:
    """Render container uptime as 'Nd Nh Nm', 'Nh Nm', 'Nm' or 'Just started'."""
    if seconds is None:
        return "N/A"
    if seconds <= 0:
        return "Just started"

    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def parse_started_at(value: str) -> Optional[datetime]:
    """Parse docker's State.StartedAt (RFC 3339, nanosecond precision, UTC)."""
    if not value or value.startswith("0001-01-01"):
        return None
    try:
        return datetime.strptime(value[:19], "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


@dataclass
class ServiceHealth:
    service: str
    port: int
    status: str
    port_status: str = "closed"
    http_status: str = "unreachable"
    container_status: str = "stopped"
    uptime: str = "N/A"

    @property
    def healthy(self) -> bool:
        return self.status == STATUS_HEALTHY

    def to_dict(self) -> Dict[str, object]:
        return {
            "service": self.service,
            "port": self.port,
            "status": self.status,
            "port_status": self.port_status,
            "http_status": self.http_status,
            "container_status": self.container_status,
            "uptime": self.uptime,
        }


class HealthChecker:
    """Checks the health of deployed services."""

    def __init__(
        self,
        runner: CommandRunner,
        http_timeout: float = HTTP_TIMEOUT,
        compose_cmd: Optional[List[str]] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.runner = runner
        self.http_timeout = http_timeout
        self.compose_cmd = compose_cmd
        self.now = now

    def container_state(self, service: ServiceSpec):
        """Return (container_status, uptime) for a service's first container."""
        if not service.directory.is_dir():
            return "stopped", "N/A"

        project = ComposeProject(service.directory, self.runner, self.compose_cmd)
        ids = project.container_ids()
        if not ids:
            return "stopped", "N/A"

        if project.inspect(ids[0], "{{.State.Status}}") != "running":
            return "stopped", "N/A"

        started = parse_started_at(project.inspect(ids[0], "{{.State.StartedAt}}") or "")
        if started is None:
            return "running", "N/A"
        return "running", format_uptime(int((self.now() - started).total_seconds()))

    def check_service(self, service: ServiceSpec) -> ServiceHealth:
        health = ServiceHealth(service=service.name, port=service.port, status=STATUS_UNHEALTHY)

        if check_port_listening(service.port):
            health.port_status = "listening"
        if check_http_endpoint(service.url, timeout=self.http_timeout):
            health.http_status = "healthy"
        health.container_status, health.uptime = self.container_state(service)

        if health.http_status == "healthy" and health.container_status == "running":
            health.status = STATUS_HEALTHY
        elif health.container_status == "running":
            health.status = STATUS_STARTING
        return health

    def check_all(self, services: Sequence[ServiceSpec]) -> List[ServiceHealth]:
        return [self.check_service(service) for service in services]
