"""Records read from repositories.conf and services.conf."""
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

GITHUB_URL_PATTERN = re.compile(r'^(https://|git@)github\.com[:/][A-Za-z0-9_-]+/[A-Za-z0-9_-]+\.git$')
BRANCH_PATTERN = re.compile(r'^[A-Za-z0-9/_-]+$')
UNSAFE_PATH_CHARS = set('$`;|&')


class RepositorySpec(BaseModel):
    """One repository to clone: URL, branch and target directory."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    url: str
    branch: str = "main"
    target_dir: Path

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Only GitHub SSH or HTTPS URLs ending in .git are accepted."""
        if not GITHUB_URL_PATTERN.match(v):
            raise ValueError(
                f"Invalid repository URL: {v}. "
                "Expected git@github.com:user/repo.git or https://github.com/user/repo.git"
            )
        return v

    @field_validator('branch')
    @classmethod
    def validate_branch(cls, v):
        if not BRANCH_PATTERN.match(v):
            raise ValueError(f"Invalid branch name: {v}")
        return v

    @field_validator('target_dir', mode='before')
    @classmethod
    def validate_target_dir(cls, v):
        raw = str(v)
        if UNSAFE_PATH_CHARS.intersection(raw):
            raise ValueError(f"Invalid target directory: {raw} (contains shell metacharacters)")
        return Path(raw).expanduser()

    @property
    def name(self) -> str:
        return self.target_dir.name


class ServiceSpec(BaseModel):
    """One deployable service: name, port, checkout directory and health path."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    name: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    directory: Path
    health_path: str = "/health"

    @field_validator('directory', mode='before')
    @classmethod
    def expand_directory(cls, v):
        return Path(str(v)).expanduser()

    @field_validator('health_path')
    @classmethod
    def validate_health_path(cls, v):
        if not v.startswith('/'):
            return '/' + v
        return v

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}{self.health_path}"
