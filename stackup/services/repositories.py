"""Git repository cloning for the service checkouts."""
import enum
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from stackup.core.config import StackupConfig
from stackup.core.logger import get_logger
from stackup.core.parallel import run_all
from stackup.core.runner import CommandRunner
from stackup.models.records import RepositorySpec

logger = get_logger(__name__)


class CloneStatus(enum.Enum):
    CLONED = "cloned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CloneResult:
    repository: RepositorySpec
    status: CloneStatus
    message: str = ""
    log_file: Optional[Path] = None


@dataclass
class CloneSummary:
    results: List[CloneResult] = field(default_factory=list)

    def count(self, status: CloneStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def cloned(self) -> int:
        return self.count(CloneStatus.CLONED)

    @property
    def skipped(self) -> int:
        return self.count(CloneStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(CloneStatus.FAILED)


@dataclass
class BranchCheck:
    repository: RepositorySpec
    ok: bool
    current_branch: Optional[str] = None


class RepositoryCloner:
    """Manages git clone operations for service repositories."""

    def __init__(self, runner: CommandRunner, config: StackupConfig):
        self.runner = runner
        self.config = config

    def clone(self, repo: RepositorySpec, force: bool = False) -> CloneResult:
        """Clone one repository.

        An existing target directory is skipped, or removed first when
        force is set.
        """
        target = repo.target_dir
        if target.exists():
            if not force:
                logger.warning(f"Directory already exists: {target} (skipped)")
                return CloneResult(repo, CloneStatus.SKIPPED, "already exists")
            logger.warning(f"Removing existing directory: {target}")
            if self.runner.mock:
                logger.info(f"MOCK: Would remove {target}")
            else:
                shutil.rmtree(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        log_file = self.config.log_dir / f"clone_{repo.name}.log"

        logger.info(f"Cloning {repo.name}...")
        result = self.runner.run(
            ["git", "clone", "--branch", repo.branch, repo.url, str(target)],
            log_file=log_file,
        )
        if not result.ok:
            logger.error(f"Failed to clone {repo.name}, see log: {log_file}")
            return CloneResult(repo, CloneStatus.FAILED, f"see log: {log_file}", log_file)

        logger.info(f"✓ {repo.name} cloned successfully")
        return CloneResult(repo, CloneStatus.CLONED, log_file=log_file)

    def clone_all(
        self,
        repositories: Sequence[RepositorySpec],
        parallel: bool = False,
        force: bool = False,
    ) -> CloneSummary:
        results = run_all(
            list(repositories),
            lambda repo: self.clone(repo, force=force),
            parallel=parallel,
            max_workers=self.config.max_workers,
        )
        return CloneSummary(results)

    def current_branch(self, target: Path) -> Optional[str]:
        result = self.runner.run(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=target)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def verify(self, repo: RepositorySpec) -> BranchCheck:
        """Check the checkout exists and is on the configured branch."""
        if self.runner.mock:
            return BranchCheck(repo, True, repo.branch)
        if not (repo.target_dir / ".git").is_dir():
            logger.error(f"{repo.name}: not found or not a git repository")
            return BranchCheck(repo, False)

        branch = self.current_branch(repo.target_dir)
        if branch != repo.branch:
            logger.warning(f"{repo.name}: branch mismatch (expected: {repo.branch}, got: {branch})")
            return BranchCheck(repo, False, branch)
        return BranchCheck(repo, True, branch)

    def verify_all(self, repositories: Sequence[RepositorySpec]) -> List[BranchCheck]:
        return [self.verify(repo) for repo in repositories]
