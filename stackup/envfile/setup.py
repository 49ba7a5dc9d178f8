"""Interactive environment setup with a resumable answer cache.

Flow: environment -> MongoDB URI -> database -> API key -> external API key
-> one port per service. Each answer is written to the SetupCache as soon as
it is given. When the cache already holds a complete set, the wizard offers
to reuse it and go straight to generating the .env files.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import typer
from rich.console import Console
from rich.rule import Rule

from stackup.cli_support import print_info, print_success, print_warning
from stackup.config.loader import write_services
from stackup.core.cache import SetupCache
from stackup.core.config import StackupConfig
from stackup.core.logger import get_logger
from stackup.envfile.substitution import EnvUpdate, EnvValueError, render_env_file
from stackup.models.records import ServiceSpec

logger = get_logger(__name__)

ENV_CHOICES = {"1": "production", "2": "test"}
DEFAULT_DATABASES = {"production": "production_database", "test": "test_database"}
REQUIRED_ANSWERS = ("env_type", "mongo_uri", "mongo_db", "api_key", "external_api_key")

MIN_PORT = 1024
MAX_PORT = 65535


class SetupError(Exception):
    """Raised when setup cannot continue (missing answer, bad template...)."""
    pass


def port_key(service_name: str) -> str:
    return f"port.{service_name}"


def parse_port(text: str) -> Optional[int]:
    """Return the port if text is a number in 1024-65535, else None."""
    text = text.strip()
    if not text.isdigit():
        return None
    port = int(text)
    if port < MIN_PORT or port > MAX_PORT:
        return None
    return port


@dataclass
class SetupAnswers:
    """A complete set of answers for generating env files."""

    env_type: str
    mongo_uri: str
    mongo_db: str
    api_key: str
    external_api_key: str
    ports: Dict[str, int] = field(default_factory=dict)

    def env_values(self, service_name: str) -> Dict[str, str]:
        """Field values for one service's .env file."""
        values = {
            "mongo_uri": self.mongo_uri,
            "mongo_db": self.mongo_db,
            "api_key": self.api_key,
            "external_api_key": self.external_api_key,
        }
        if service_name in self.ports:
            values["port"] = str(self.ports[service_name])
        return values

    @classmethod
    def from_cache(cls, cache: SetupCache, services: Sequence[ServiceSpec]) -> Optional["SetupAnswers"]:
        """Rebuild answers from the setup cache, or None if anything is missing."""
        if not cache.is_complete(REQUIRED_ANSWERS):
            return None
        values = cache.values
        if values["env_type"] not in DEFAULT_DATABASES:
            return None

        ports: Dict[str, int] = {}
        for service in services:
            port = parse_port(values.get(port_key(service.name), ""))
            if port is None:
                return None
            ports[service.name] = port

        return cls(
            env_type=values["env_type"],
            mongo_uri=values["mongo_uri"],
            mongo_db=values["mongo_db"],
            api_key=values["api_key"],
            external_api_key=values["external_api_key"],
            ports=ports,
        )


@dataclass
class SetupResult:
    answers: SetupAnswers
    generated: Dict[str, EnvUpdate] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    services_backup: Optional[Path] = None
    reused_cache: bool = False


class EnvSetupWizard:
    """Collects setup answers and writes each service's .env file.

    Args:
        config: Runtime configuration (template paths, services.conf location)
        services: Services from services.conf
        cache: Resume cache; answers are persisted to it immediately
        console: Rich console for output
        non_interactive: Use cached answers and defaults, never prompt
        prompt: Prompt function (typer.prompt signature)
        confirm: Confirmation function (typer.confirm signature)
    """

    def __init__(
        self,
        config: StackupConfig,
        services: Sequence[ServiceSpec],
        cache: SetupCache,
        console: Console,
        non_interactive: bool = False,
        prompt: Callable[..., str] = typer.prompt,
        confirm: Callable[..., bool] = typer.confirm,
    ):
        self.config = config
        self.services = list(services)
        self.cache = cache
        self.console = console
        self.non_interactive = non_interactive
        self.prompt = prompt
        self.confirm = confirm

    @property
    def available_services(self) -> List[ServiceSpec]:
        """Services whose checkout directory exists."""
        return [s for s in self.services if s.directory.is_dir()]

    def run(self) -> SetupResult:
        """Collect (or reuse) answers, then generate env files and services.conf."""
        self._header("Interactive Environment Setup")

        answers = self._cached_answers()
        reused = answers is not None
        if answers is None:
            answers = self.collect()

        result = self.generate(answers)
        result.reused_cache = reused
        self._summary(result)
        return result

    def _cached_answers(self) -> Optional[SetupAnswers]:
        self.cache.load()
        answers = SetupAnswers.from_cache(self.cache, self.available_services)
        if answers is None:
            if self.cache.values:
                print_info(self.console, f"Resuming previous setup from {self.cache.path}")
            return None

        print_info(self.console, "Found saved configuration from a previous run:")
        self.console.print(f"  Environment: {answers.env_type}")
        self.console.print(f"  MongoDB Database: {answers.mongo_db}")
        for name, port in answers.ports.items():
            self.console.print(f"  {name}: port {port}")

        if self.non_interactive or self.confirm("Use saved configuration?", default=True):
            return answers

        self.cache.clear()
        return None

    def collect(self) -> SetupAnswers:
        """Ask every question, persisting each answer as it is given."""
        cached = self.cache.values

        env_type = self._ask_environment(cached.get("env_type"))
        print_success(self.console, f"Selected: {env_type} environment")

        self._header("Common Configuration")
        mongo_uri = self._ask("mongo_uri", "MongoDB URI", cached, required=True, secret=True)
        mongo_db = self._ask(
            "mongo_db", "MongoDB Database", cached,
            default=cached.get("mongo_db") or DEFAULT_DATABASES[env_type],
        )
        api_key = self._ask("api_key", "Internal API Key", cached, required=True, secret=True)
        external_api_key = self._ask(
            "external_api_key", "RapidAPI Key", cached, required=True, secret=True
        )
        print_success(self.console, "Configuration collected")

        self._header("Port Configuration")
        print_info(self.console, "Configure ports for each service (press Enter to use default)")
        ports: Dict[str, int] = {}
        for service in self.services:
            if not service.directory.is_dir():
                print_warning(self.console, f"{service.name}: Directory not found, will skip")
                continue
            ports[service.name] = self._ask_port(service, cached)

        return SetupAnswers(
            env_type=env_type,
            mongo_uri=mongo_uri,
            mongo_db=mongo_db,
            api_key=api_key,
            external_api_key=external_api_key,
            ports=ports,
        )

    def generate(self, answers: SetupAnswers) -> SetupResult:
        """Render every available service's .env and rewrite services.conf."""
        template = self.config.template_for(answers.env_type)
        if not template.exists():
            raise SetupError(f"Environment template not found: {template}")

        self._header("Applying Configuration to Services")
        result = SetupResult(answers=answers)
        for service in self.services:
            if not service.directory.is_dir():
                print_warning(self.console, f"{service.name}: Directory not found, skipping")
                result.skipped.append(service.name)
                continue

            port = answers.ports.get(service.name, service.port)
            print_info(self.console, f"Configuring {service.name} (Port: {port})...")
            try:
                update = render_env_file(
                    template, service.directory / ".env", answers.env_values(service.name)
                )
            except EnvValueError as e:
                raise SetupError(str(e)) from e

            if update.missing_fields:
                logger.debug(
                    f"{service.name}: template has no key for {', '.join(update.missing_fields)}"
                )
            result.generated[service.name] = update
            print_success(self.console, f"{service.name} configured (Port: {port})")

        self._header("Updating Service Configuration")
        updated = [
            s.model_copy(update={"port": answers.ports.get(s.name, s.port)}) for s in self.services
        ]
        result.services_backup = write_services(self.config.services_file, updated)
        print_success(self.console, f"Service configuration updated: {self.config.services_file}")
        return result

    def _ask_environment(self, cached_env: Optional[str]) -> str:
        if self.non_interactive:
            if cached_env in DEFAULT_DATABASES:
                return cached_env
            raise SetupError("Environment type not set; run setup interactively first")

        self.console.print("Select environment:")
        self.console.print("  1) Production")
        self.console.print("  2) Test")
        default_choice = next((k for k, v in ENV_CHOICES.items() if v == cached_env), None)
        choice = str(self.prompt("Enter choice (1 or 2)", default=default_choice)).strip()
        env_type = ENV_CHOICES.get(choice)
        if env_type is None:
            raise SetupError(f"Invalid choice: {choice}")

        self.cache.set("env_type", env_type)
        return env_type

    def _ask(
        self,
        key: str,
        label: str,
        cached: Dict[str, str],
        default: Optional[str] = None,
        required: bool = False,
        secret: bool = False,
    ) -> str:
        """Ask one question; cached answers become the default."""
        default = default if default is not None else cached.get(key)

        if self.non_interactive:
            value = default or ""
        else:
            if secret and default:
                label = f"{label} [saved]"
            value = self.prompt(
                label,
                default=default or "",
                show_default=not secret,
            )
            value = str(value)
            if not value.strip() and default:
                value = default

        if required and not value.strip():
            raise SetupError(f"{label.split(' [')[0]} is required")

        self.cache.set(key, value)
        return value

    def _ask_port(self, service: ServiceSpec, cached: Dict[str, str]) -> int:
        default_port = parse_port(cached.get(port_key(service.name), "")) or service.port

        if self.non_interactive:
            port = default_port
        else:
            self.console.print(f"[blue]{service.name}[/blue]")
            self.console.print(f"  Directory: {service.directory}")
            raw = str(self.prompt("  Port", default=str(default_port))).strip()
            port = parse_port(raw) if raw else default_port
            if port is None:
                print_warning(self.console, f"Invalid port: {raw} (must be {MIN_PORT}-{MAX_PORT})")
                print_info(self.console, f"Using default port: {default_port}")
                port = default_port

        self.cache.set(port_key(service.name), str(port))
        print_success(self.console, f"{service.name}: Port {port}")
        return port

    def _header(self, title: str) -> None:
        self.console.print()
        self.console.print(Rule(f"[bold blue]{title}[/bold blue]"))

    def _summary(self, result: SetupResult) -> None:
        self._header("Configuration Summary")
        self.console.print(f"Environment: {result.answers.env_type}")
        self.console.print(f"MongoDB Database: {result.answers.mongo_db}")
        self.console.print("\nService Ports:")
        for name in result.generated:
            self.console.print(f"  • {name}: {result.answers.ports.get(name)}")
        self.console.print()
        print_success(self.console, "All services configured!")
