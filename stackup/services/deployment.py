"""Build, start and stop services with docker compose."""
import enum
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import yaml

from stackup.config.loader import select_services
from stackup.core.config import StackupConfig
from stackup.core.logger import get_logger
from stackup.core.parallel import run_all
from stackup.core.runner import CommandRunner
from stackup.models.records import ServiceSpec
from stackup.services.compose import ComposeFileError, ComposeProject, detect_compose_command, load_definition
from stackup.services.health import wait_for_health

logger = get_logger(__name__)


class EnvCheck(enum.Enum):
    OK = "ok"
    COPIED_EXAMPLE = "copied_example"
    FAILED = "failed"


@dataclass
class DeploymentResult:
    """Outcome of deploying one service."""

    service: str
    success: bool
    stage: str = "done"
    message: str = ""
    healthy: Optional[bool] = None
    log_files: List[Path] = field(default_factory=list)


@dataclass
class DeploymentSummary:
    results: List[DeploymentResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[DeploymentResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[DeploymentResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.failed


class ServiceDeployer:
    """Deploys services described in services.conf.

    Each deployment is self-contained: it reports a DeploymentResult and
    shares no counters with others, so deploy_all can run them on worker
    threads and tally afterwards.
    """

    def __init__(
        self,
        runner: CommandRunner,
        config: StackupConfig,
        compose_cmd: Optional[List[str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.runner = runner
        self.config = config
        self.compose_cmd = compose_cmd or detect_compose_command(runner)
        self.sleep = sleep

    def project(self, service: ServiceSpec) -> ComposeProject:
        return ComposeProject(service.directory, self.runner, self.compose_cmd)

    def check_environment(self, service: ServiceSpec) -> EnvCheck:
        """Make sure the checkout exists and has a .env file.

        A missing .env is copied from .env.example when one exists; the
        service still deploys but the values need editing.
        """
        directory = service.directory
        if not directory.is_dir():
            logger.error(f"{service.name}: Directory not found ({directory})")
            return EnvCheck.FAILED

        env_file = directory / ".env"
        if env_file.exists():
            return EnvCheck.OK

        example = directory / ".env.example"
        if not example.exists():
            logger.error(f"{service.name}: No .env or .env.example found")
            return EnvCheck.FAILED

        shutil.copyfile(example, env_file)
        logger.warning(f"{service.name}: .env not found, copied .env.example; edit {env_file} with correct values")
        return EnvCheck.COPIED_EXAMPLE

    def deploy_service(self, service: ServiceSpec) -> DeploymentResult:
        """Environment check, compose build, compose up, then wait for health.

        A service that does not become healthy in time still counts as
        deployed; only the earlier stages can fail it.
        """
        logger.info(f"Deploying: {service.name}")

        if self.check_environment(service) is EnvCheck.FAILED:
            return DeploymentResult(service.name, False, "environment", "Environment check failed")

        try:
            definition = load_definition(service.directory)
        except (yaml.YAMLError, ComposeFileError) as e:
            return DeploymentResult(service.name, False, "compose", f"Invalid compose file: {e}")
        if definition is None:
            return DeploymentResult(service.name, False, "compose", "No docker-compose file found")
        if definition.published_ports and service.port not in definition.published_ports:
            logger.warning(
                f"{service.name}: port {service.port} is not published by "
                f"{definition.path.name} (publishes {', '.join(map(str, definition.published_ports))})"
            )

        project = self.project(service)
        self.config.log_dir.mkdir(parents=True, exist_ok=True)
        build_log = self.config.log_dir / f"build_{service.name}.log"
        start_log = self.config.log_dir / f"start_{service.name}.log"

        logger.info(f"{service.name}: Building Docker image...")
        if not project.build(log_file=build_log).ok:
            logger.error(f"{service.name}: Build failed, see log: {build_log}")
            return DeploymentResult(service.name, False, "build", f"Build failed, see log: {build_log}", log_files=[build_log])
        logger.info(f"✓ {service.name}: Build completed")

        logger.info(f"{service.name}: Starting service...")
        if not project.up(log_file=start_log).ok:
            logger.error(f"{service.name}: Failed to start, see log: {start_log}")
            return DeploymentResult(
                service.name, False, "start", f"Failed to start, see log: {start_log}",
                log_files=[build_log, start_log],
            )
        logger.info(f"✓ {service.name}: Started successfully")

        healthy = self.wait_healthy(service)
        if not healthy:
            logger.warning(f"{service.name}: Health check failed, but service may still be starting")

        return DeploymentResult(service.name, True, healthy=healthy, log_files=[build_log, start_log])

    def wait_healthy(self, service: ServiceSpec) -> bool:
        if self.runner.mock:
            logger.info(f"MOCK: Would wait for {service.url}")
            return True

        logger.info(f"{service.name}: Waiting for service to be healthy...")
        healthy = wait_for_health(
            service.port,
            service.health_path,
            attempts=self.config.health_attempts,
            interval=self.config.health_interval,
            timeout=self.config.http_timeout,
            sleep=self.sleep,
        )
        if healthy:
            logger.info(f"✓ {service.name}: Service is healthy!")
        return healthy

    def deploy_all(self, services: Sequence[ServiceSpec], parallel: bool = False) -> DeploymentSummary:
        results = run_all(
            list(services), self.deploy_service, parallel=parallel, max_workers=self.config.max_workers
        )
        return DeploymentSummary(results)

    def stop_service(self, service: ServiceSpec) -> bool:
        """Run `compose down`; a missing checkout counts as already stopped."""
        if not service.directory.is_dir():
            logger.warning(f"{service.name}: Directory not found, nothing to stop")
            return True
        result = self.project(service).down()
        if result.ok:
            logger.info(f"✓ {service.name}: Stopped")
        else:
            logger.warning(f"{service.name}: compose down failed: {result.output}")
        return result.ok

    def stop_all(self, services: Sequence[ServiceSpec]) -> List[bool]:
        return [self.stop_service(service) for service in services]

    def restart(self, services: Sequence[ServiceSpec], name: str) -> DeploymentResult:
        """Stop and redeploy one service by name.

        Raises:
            ConfigFileError: If no service has that name
        """
        service = select_services(services, name)[0]
        self.stop_service(service)
        return self.deploy_service(service)
