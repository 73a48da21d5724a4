"""Unit tests for the `orchestrator` command line."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from conftest import FakeIntegration, fail, ok

from step_orchestrator import main as cli
from step_orchestrator.integrations.registry import CapabilityRegistry


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path) -> Iterator[None]:
    """Run each command from an empty directory and restore root logging afterwards."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ORCHESTRATOR_RETRY_BACKOFF_SECONDS", "0")
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _use_registry(monkeypatch, *integrations: FakeIntegration) -> None:
    monkeypatch.setattr(cli, "build_registry", lambda _settings: CapabilityRegistry(integrations))


def _ci_integrations(tests_pass: bool = True) -> list[FakeIntegration]:
    return [
        FakeIntegration(
            "qa", handlers={"runTests": ok() if tests_pass else fail(), "analyzeCoverage": ok()}
        ),
        FakeIntegration("docker", handlers={"build": ok()}),
    ]


def test_list_prints_catalog(capsys) -> None:
    assert cli.main(["list"]) == 0

    out = capsys.readouterr().out
    assert "bug-fix" in out
    assert "release" in out
    assert "ci\tContinuous Integration (3 steps)" in out


def test_show_prints_definition(capsys) -> None:
    assert cli.main(["show", "ci"]) == 0

    out = capsys.readouterr().out
    definition = json.loads(out[out.index("{") : out.rindex("}") + 1])
    assert definition["id"] == "ci"
    assert [s["id"] for s in definition["steps"]] == ["run-tests", "coverage", "docker-build"]


def test_show_unknown_workflow_is_usage_error(capsys) -> None:
    assert cli.main(["show", "nope"]) == 2
    assert "Unknown workflow: nope" in capsys.readouterr().err


def test_run_success(monkeypatch, capsys) -> None:
    _use_registry(monkeypatch, *_ci_integrations())

    code = cli.main(["run", "ci", "--var", "imageName=app", "--var", "buildNumber=7"])

    assert code == 0
    out = capsys.readouterr().out
    assert "[ok] docker-build: done" in out
    assert "Workflow SUCCESS: 3/3 steps passed" in out


def test_run_failure_exit_code(monkeypatch, capsys) -> None:
    _use_registry(monkeypatch, *_ci_integrations(tests_pass=False))

    assert cli.main(["run", "ci"]) == 4
    assert "[FAILED] run-tests: boom" in capsys.readouterr().out


def test_run_closes_integrations_on_exit(monkeypatch, capsys) -> None:
    integrations = _ci_integrations(tests_pass=False)
    _use_registry(monkeypatch, *integrations)

    assert cli.main(["run", "ci"]) == 4
    assert all(i.closed for i in integrations)


def test_run_async_with_context_file(monkeypatch, tmp_path: Path, capsys) -> None:
    qa, docker = _ci_integrations()
    _use_registry(monkeypatch, qa, docker)
    context_file = tmp_path / "ctx.json"
    context_file.write_text(json.dumps({"imageName": "app", "buildNumber": 1}), encoding="utf-8")

    code = cli.main(
        ["run", "ci", "--async", "--context-file", str(context_file), "--var", "buildNumber=2"]
    )

    assert code == 0
    assert docker.calls[0][1]["tag"] == "ci-2"
    assert docker.calls[0][1]["imageName"] == "app"
    assert qa.calls[0][1]["workingDir"] == str(Path.cwd())


def test_run_rejects_malformed_var(monkeypatch, capsys) -> None:
    _use_registry(monkeypatch, *_ci_integrations())

    assert cli.main(["run", "ci", "--var", "no-equals-sign"]) == 2
    assert "expected key=value" in capsys.readouterr().err


def test_health_reports_each_integration(monkeypatch, capsys) -> None:
    _use_registry(
        monkeypatch, FakeIntegration("qa"), FakeIntegration("jira", configured=False)
    )

    assert cli.main(["health"]) == 1
    out = capsys.readouterr().out
    assert "jira: unhealthy (Not configured)" in out
    assert "qa: healthy (Connected)" in out


def test_invalid_settings_is_usage_error(monkeypatch, capsys) -> None:
    monkeypatch.setenv("ORCHESTRATOR_WORKER_POOL_SIZE", "0")

    assert cli.main(["list"]) == 2
    assert "Configuration error" in capsys.readouterr().err
