"""Tests for health polling and service health reports."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from stackup.models import ServiceSpec
from stackup.services import health
from stackup.services.health import (
    HealthChecker,
    check_http_endpoint,
    format_uptime,
    parse_started_at,
    wait_for_health,
)


def _response(status_code):
    response = MagicMock()
    response.status_code = status_code
    return response


@pytest.fixture
def http(monkeypatch):
    """Patch requests.get with a scripted list of status codes (or exceptions)."""
    script = []
    calls = []

    def fake_get(url, timeout=None):
        calls.append(url)
        outcome = script.pop(0) if script else 503
        if isinstance(outcome, Exception):
            raise outcome
        return _response(outcome)

    monkeypatch.setattr(health.requests, "get", fake_get)
    fake_get.script = script
    fake_get.calls = calls
    return fake_get


class TestCheckHttpEndpoint:

    @pytest.mark.parametrize("status,expected", [(200, True), (204, True), (301, False), (500, False)])
    def test_status_codes(self, http, status, expected):
        http.script.append(status)
        assert check_http_endpoint("http://localhost:8082/health") is expected

    def test_connection_error(self, http):
        http.script.append(requests.ConnectionError("refused"))
        assert check_http_endpoint("http://localhost:8082/health") is False


class TestWaitForHealth:

    def test_stops_on_first_success(self, http):
        http.script.extend([503, 503, 200])
        sleeps = []

        assert wait_for_health(8082, attempts=30, interval=2, sleep=sleeps.append) is True

        assert len(http.calls) == 3
        assert sleeps == [2, 2]
        assert http.calls[0] == "http://localhost:8082/health"

    def test_gives_up_after_exact_attempts(self, http):
        sleeps = []
        attempts = []

        assert wait_for_health(
            8083, path="/status", attempts=5, interval=1.5,
            sleep=sleeps.append, on_attempt=attempts.append,
        ) is False

        assert len(http.calls) == 5
        assert sleeps == [1.5] * 4
        assert attempts == [1, 2, 3, 4, 5]
        assert http.calls[-1] == "http://localhost:8083/status"

    def test_unreachable_counts_as_attempt(self, http):
        http.script.extend([requests.ConnectionError("refused"), 200])
        assert wait_for_health(8082, attempts=3, interval=0, sleep=lambda s: None) is True
        assert len(http.calls) == 2


class TestUptime:

    @pytest.mark.parametrize("seconds,expected", [
        (None, "N/A"),
        (0, "Just started"),
        (59, "0m"),
        (125, "2m"),
        (3 * 3600 + 5 * 60, "3h 5m"),
        (2 * 86400 + 4 * 3600 + 7 * 60, "2d 4h 7m"),
    ])
    def test_format_uptime(self, seconds, expected):
        assert format_uptime(seconds) == expected

    def test_parse_started_at(self):
        started = parse_started_at("2025-03-01T10:00:00.123456789Z")
        assert started == datetime(2025, 3, 1, 10, 0, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", "0001-01-01T00:00:00Z", "yesterday"])
    def test_parse_started_at_invalid(self, value):
        assert parse_started_at(value) is None


class TestHealthChecker:

    @pytest.fixture
    def service(self, tmp_path):
        directory = tmp_path / "user-info"
        directory.mkdir()
        return ServiceSpec(name="user-info", port=8082, directory=directory)

    @pytest.fixture
    def checker(self, runner):
        now = datetime(2025, 3, 1, 12, 30, 0, tzinfo=timezone.utc)
        return HealthChecker(runner, compose_cmd=["docker-compose"], now=lambda: now)

    def _container(self, runner, status="running", started="2025-03-01T10:00:00.5Z"):
        runner.respond("docker-compose", "ps", "-q", stdout="abc123\ndef456\n")
        runner.respond("docker", "inspect", "-f", "{{.State.Status}}", stdout=f"{status}\n")
        runner.respond("docker", "inspect", "-f", "{{.State.StartedAt}}", stdout=f"{started}\n")

    def test_healthy_service(self, runner, checker, service, monkeypatch):
        self._container(runner)
        monkeypatch.setattr(health, "check_port_listening", lambda port: True)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: True)

        report = checker.check_service(service)

        assert report.healthy
        assert report.port_status == "listening"
        assert report.container_status == "running"
        assert report.uptime == "2h 30m"
        assert ["docker", "inspect", "-f", "{{.State.Status}}", "abc123"] in runner.commands()

    def test_running_but_not_answering_is_starting(self, runner, checker, service, monkeypatch):
        self._container(runner)
        monkeypatch.setattr(health, "check_port_listening", lambda port: False)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: False)

        report = checker.check_service(service)

        assert report.status == "starting"
        assert report.http_status == "unreachable"

    def test_no_containers_is_unhealthy(self, runner, checker, service, monkeypatch):
        monkeypatch.setattr(health, "check_port_listening", lambda port: False)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: True)

        report = checker.check_service(service)

        assert report.status == "unhealthy"
        assert report.container_status == "stopped"
        assert report.uptime == "N/A"

    def test_exited_container(self, runner, checker, service, monkeypatch):
        self._container(runner, status="exited")
        monkeypatch.setattr(health, "check_port_listening", lambda port: False)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: False)

        assert checker.check_service(service).container_status == "stopped"

    def test_missing_directory_skips_docker(self, runner, checker, tmp_path, monkeypatch):
        monkeypatch.setattr(health, "check_port_listening", lambda port: False)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: False)
        service = ServiceSpec(name="gone", port=8090, directory=tmp_path / "gone")

        report = checker.check_service(service)

        assert report.status == "unhealthy"
        assert runner.calls == []

    def test_to_dict(self, runner, checker, service, monkeypatch):
        monkeypatch.setattr(health, "check_port_listening", lambda port: False)
        monkeypatch.setattr(health, "check_http_endpoint", lambda url, timeout=5: False)

        data = checker.check_service(service).to_dict()

        assert data == {
            "service": "user-info",
            "port": 8082,
            "status": "unhealthy",
            "port_status": "closed",
            "http_status": "unreachable",
            "container_status": "stopped",
            "uptime": "N/A",
        }
