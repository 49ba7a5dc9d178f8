"""Validation tests for repository and service records."""
import pytest
from pydantic import ValidationError

from stackup.models import RepositorySpec, ServiceSpec


class TestRepositorySpec:

    @pytest.mark.parametrize("url", [
        "git@github.com:acme/repo.git",
        "https://github.com/acme/repo-name_2.git",
    ])
    def test_accepts_github_urls(self, url):
        assert RepositorySpec(url=url, target_dir="/srv/repo").url == url

    @pytest.mark.parametrize("url", [
        "https://github.com/acme/repo",
        "https://gitlab.com/acme/repo.git",
        "git@github.com:acme/repo.git; rm -rf /",
    ])
    def test_rejects_other_urls(self, url):
        with pytest.raises(ValidationError):
            RepositorySpec(url=url, target_dir="/srv/repo")

    @pytest.mark.parametrize("branch", ["main", "feature/x-1", "release_2"])
    def test_branch_names(self, branch):
        spec = RepositorySpec(url="git@github.com:a/b.git", branch=branch, target_dir="/srv/b")
        assert spec.branch == branch

    def test_rejects_bad_branch(self):
        with pytest.raises(ValidationError):
            RepositorySpec(url="git@github.com:a/b.git", branch="main;ls", target_dir="/srv/b")

    @pytest.mark.parametrize("target", ["/srv/$HOME", "/srv/`id`", "/srv/a;b", "/srv/a|b", "/srv/a&b"])
    def test_rejects_shell_metacharacters_in_target(self, target):
        with pytest.raises(ValidationError):
            RepositorySpec(url="git@github.com:a/b.git", target_dir=target)


class TestServiceSpec:

    def test_health_path_gets_leading_slash(self):
        spec = ServiceSpec(name="svc", port=8082, directory="/srv/svc", health_path="status")
        assert spec.health_path == "/status"

    @pytest.mark.parametrize("port", [0, 70000])
    def test_port_range(self, port):
        with pytest.raises(ValidationError):
            ServiceSpec(name="svc", port=port, directory="/srv/svc")

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            ServiceSpec(name="svc", port=8082, directory="/srv/svc", replicas=2)
