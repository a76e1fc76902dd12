"""Tests for the nanocd command-line interface."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from click.testing import CliRunner

from nanocd import __version__
from nanocd.cli import cli
from nanocd.errors import RegistryUnavailable
from nanocd.models.config import PolicyConfig
from nanocd.models.results import CycleReport, WorkloadOutcome, WorkloadState
from nanocd.models.workloads import WorkloadKind, WorkloadRef
from nanocd.registry import RegistryTagProvider

_POLICY = """\
refreshIntervalSeconds: 45
namespaces:
  prod:
    deployment: [api]
    daemonSet: [agent]
    images:
      registry/api: {prefix: v, versionMatch: "<2.0.0"}
    discordWebhook: https://discord.example/api/webhooks/1/abc
"""


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def policy_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(_POLICY)
    return path


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestCheck:
    def test_valid_policy(self, runner: CliRunner, policy_file: Path) -> None:
        result = runner.invoke(cli, ["check", str(policy_file)])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "refresh interval: 45s"
        assert "namespace prod:" in lines
        assert "  Deployment/api" in lines
        assert "  DaemonSet/agent" in lines
        assert "  image registry/api: prefix='v' range='<2.0.0'" in lines
        assert "  notifications: webhook" in lines
        assert lines[-1] == "policy OK"

    def test_invalid_policy(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("refreshIntervalSeconds: 0\nnamespaces: {}\n")
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 1
        assert "invalid policy: refreshIntervalSeconds: must be at least 1" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["check", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "cannot read policy file" in result.output


class TestResolve:
    def test_prints_resolution(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        requested: list[str] = []

        async def fake_list_tags(self: RegistryTagProvider, repository: str) -> list[str]:
            requested.append(repository)
            return ["v1.2.0", "v1.3.0", "v2.0.0", "latest"]

        monkeypatch.setattr(RegistryTagProvider, "list_tags", fake_list_tags)
        result = runner.invoke(cli, ["resolve", "registry/api:v1.2.0", "--prefix", "v", "--range", "<2.0.0"])

        assert result.exit_code == 0, result.output
        assert requested == ["registry/api"]
        assert json.loads(result.output) == {
            "status": "update",
            "current": "registry/api:v1.2.0",
            "target": "registry/api:v1.3.0",
            "reason": None,
            "matched_candidates": 3,
            "excluded_by_range": "2.0.0",
        }

    def test_bad_range(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["resolve", "registry/api:v1.2.0", "--range", "not a range !!"])
        assert result.exit_code == 2
        assert "--range" in result.output

    def test_registry_unavailable(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        async def failing_list_tags(self: RegistryTagProvider, repository: str) -> list[str]:
            raise RegistryUnavailable(repository, "tag list returned HTTP 503")

        monkeypatch.setattr(RegistryTagProvider, "list_tags", failing_list_tags)
        result = runner.invoke(cli, ["resolve", "registry/api:v1.2.0"])
        assert result.exit_code == 1
        assert "HTTP 503" in result.output


class TestPlan:
    def test_prints_report(self, runner: CliRunner, policy_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[tuple[PolicyConfig, float, int]] = []

        async def fake_plan_cycle(policy: PolicyConfig, timeout: float, concurrency: int) -> CycleReport:
            seen.append((policy, timeout, concurrency))
            now = datetime.now(tz=UTC)
            return CycleReport(
                started_at=now,
                finished_at=now,
                dry_run=True,
                outcomes=[
                    WorkloadOutcome(
                        WorkloadRef("prod", WorkloadKind.DEPLOYMENT, "api"),
                        WorkloadState.PLANNED,
                        patch={"api": "registry/api:v1.3.0"},
                    )
                ],
            )

        monkeypatch.setattr("nanocd.cli.main._plan_cycle", fake_plan_cycle)
        # structlog would otherwise bind to the runner's temporary stderr
        monkeypatch.setattr("nanocd.cli.main.setup_logging", lambda level, fmt: None)
        result = runner.invoke(cli, ["plan", str(policy_file), "--concurrency", "2"])

        assert result.exit_code == 0, result.output
        assert seen[0][1:] == (10.0, 2)
        report = json.loads(result.output)
        assert report["dry_run"] is True
        assert report["workloads"][0]["state"] == "planned"
        assert report["workloads"][0]["patch"] == {"api": "registry/api:v1.3.0"}
