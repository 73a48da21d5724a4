"""Unit tests for the bundled integrations.

External systems are never contacted: the CLI-backed integrations get a fake
command runner, Jira gets a mocked ``requests`` session and GitHub a mocked
PyGithub client.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from unittest.mock import MagicMock

import requests
from github import GithubException

from step_orchestrator.config import EngineSettings
from step_orchestrator.integrations.docker import DockerIntegration
from step_orchestrator.integrations.factory import build_registry
from step_orchestrator.integrations.github import GitHubIntegration
from step_orchestrator.integrations.jira import JiraIntegration
from step_orchestrator.integrations.qa import QAIntegration
from step_orchestrator.integrations.registry import CapabilityRegistry
from step_orchestrator.integrations.shell import CommandOutcome, run_command
from step_orchestrator.workflow.dispatch import ActionDispatcher


class FakeRunner:
    def __init__(self, *outcomes: CommandOutcome) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[list[str], Path | None, float]] = []

    def __call__(self, args: Sequence[str], cwd: Path | None, timeout: float) -> CommandOutcome:
        self.calls.append((list(args), cwd, timeout))
        if self.outcomes:
            return self.outcomes.pop(0)
        return CommandOutcome(returncode=0, output="")


def _response(payload: object) -> MagicMock:
    resp = MagicMock()
    resp.ok = True
    resp.json.return_value = payload
    return resp


# --- qa -------------------------------------------------------------------


def test_qa_run_tests_passes(tmp_path: Path) -> None:
    runner = FakeRunner(CommandOutcome(returncode=0, output="3 passed\n"))
    qa = QAIntegration(test_command="pytest -q -x", runner=runner)

    result = qa.run_tests({"workingDir": str(tmp_path)})

    assert result.success is True
    assert result.message == "Tests passed"
    assert result.data["exitCode"] == 0
    assert result.data["output"] == ["3 passed"]
    assert runner.calls[0][0] == ["pytest", "-q", "-x"]
    assert runner.calls[0][1] == tmp_path


def test_qa_test_command_override_and_failure(tmp_path: Path) -> None:
    runner = FakeRunner(CommandOutcome(returncode=1, output="1 failed"))
    qa = QAIntegration(runner=runner)

    result = qa.run_tests({"workingDir": str(tmp_path), "testCommand": "make smoke"})

    assert result.success is False
    assert result.message == "Tests failed (exit code 1)"
    assert runner.calls[0][0] == ["make", "smoke"]


def test_qa_timeout_message(tmp_path: Path) -> None:
    runner = FakeRunner(CommandOutcome(returncode=-1, output="", timed_out=True))
    qa = QAIntegration(timeout_seconds=90, runner=runner)

    result = qa.analyze_coverage({"workingDir": str(tmp_path)})

    assert result.success is False
    assert result.message == "Tests timed out after 90s"


def test_qa_missing_working_dir(tmp_path: Path) -> None:
    runner = FakeRunner()
    qa = QAIntegration(runner=runner)

    result = qa.run_tests({"workingDir": str(tmp_path / "missing")})

    assert result.success is False
    assert result.message.startswith("Working directory not found")
    assert runner.calls == []


def test_qa_unresolved_test_command_falls_back_to_default(tmp_path: Path) -> None:
    runner = FakeRunner()
    qa = QAIntegration(test_command="pytest -q", runner=runner)

    result = qa.run_tests({"workingDir": str(tmp_path), "testCommand": "${smokeTestCommand}"})

    assert result.success is True
    assert result.data["command"] == "pytest -q"
    assert runner.calls[0][0] == ["pytest", "-q"]


def test_qa_run_test_file_appends_quoted_path(tmp_path: Path) -> None:
    runner = FakeRunner(CommandOutcome(returncode=1, output="1 failed"))
    qa = QAIntegration(test_command="pytest -q", runner=runner)

    result = ActionDispatcher(CapabilityRegistry([qa])).dispatch(
        "qa", "runTestFile", {"workingDir": str(tmp_path), "testFile": "tests/test a.py"}
    )

    assert result.success is False
    assert result.action == "runTestFile"
    assert result.message == "Tests failed (exit code 1)"
    assert runner.calls[0][0] == ["pytest", "-q", "tests/test a.py"]


def test_qa_run_test_file_requires_test_file() -> None:
    runner = FakeRunner()
    qa = QAIntegration(runner=runner)

    result = ActionDispatcher(CapabilityRegistry([qa])).dispatch("qa", "runTestFile", {})

    assert result.success is False
    assert result.message == "testFile is required"
    assert runner.calls == []


def test_qa_disabled_is_not_configured() -> None:
    qa = QAIntegration(enabled=False, runner=FakeRunner())

    assert qa.is_configured() is False
    assert qa.health_check().healthy is False


# --- docker ---------------------------------------------------------------


def test_docker_build_applies_registry_prefix_and_default_tag() -> None:
    runner = FakeRunner()
    docker = DockerIntegration(registry="registry.example.com/", runner=runner)

    result = docker.build({"imageName": "team/app", "contextPath": "/src"})

    assert result.success is True
    assert result.data["image"] == "registry.example.com/team/app:latest"
    assert runner.calls[0][0] == [
        "docker",
        "build",
        "-t",
        "registry.example.com/team/app:latest",
        "/src",
    ]


def test_docker_build_keeps_fully_qualified_image() -> None:
    runner = FakeRunner()
    docker = DockerIntegration(registry="registry.example.com", runner=runner)

    result = docker.build({"imageName": "ghcr.io/acme/app", "tag": "1.2.0", "dockerfile": "D"})

    assert result.data["image"] == "ghcr.io/acme/app:1.2.0"
    assert runner.calls[0][0][4:6] == ["-f", "D"]


def test_docker_build_failure_reports_exit_code() -> None:
    runner = FakeRunner(CommandOutcome(returncode=2, output="step 3 failed"))
    docker = DockerIntegration(runner=runner)

    result = docker.build({"imageName": "app", "tag": "ci-7"})

    assert result.success is False
    assert result.message == "Build failed (exit code 2)"
    assert result.data["output"] == ["step 3 failed"]


def test_docker_push_and_list_containers() -> None:
    runner = FakeRunner(
        CommandOutcome(returncode=0, output="pushed"),
        CommandOutcome(returncode=0, output="abc\tapp:1\tUp 2 minutes\tweb\n"),
    )
    docker = DockerIntegration(runner=runner)

    pushed = docker.push({"imageName": "app", "tag": "1"})
    listed = docker.list_containers({"all": True})

    assert pushed.message == "Pushed app:1"
    assert runner.calls[1][0][:3] == ["docker", "ps", "-a"]
    assert listed.data["containers"] == [
        {"id": "abc", "image": "app:1", "status": "Up 2 minutes", "name": "web"}
    ]


def test_docker_configuration_follows_cli_availability() -> None:
    runner = FakeRunner(
        CommandOutcome(returncode=127, output="docker: not found"),
        CommandOutcome(returncode=1, output="Cannot connect to the Docker daemon"),
    )
    missing = DockerIntegration(runner=runner)

    assert missing.is_configured() is False
    health = missing.health_check()
    assert health.healthy is False
    assert health.message == "Docker daemon not responding"
    assert [call[0][:2] for call in runner.calls] == [["docker", "version"], ["docker", "info"]]


def test_docker_availability_is_checked_once() -> None:
    runner = FakeRunner()
    docker = DockerIntegration(runner=runner)
    dispatcher = ActionDispatcher(CapabilityRegistry([docker]))

    for tag in ("1", "2", "3"):
        assert dispatcher.dispatch("docker", "push", {"imageName": "app", "tag": tag}).success

    commands = [call[0][:2] for call in runner.calls]
    assert commands.count(["docker", "version"]) == 1
    assert commands.count(["docker", "push"]) == 3


def test_docker_health_is_not_cached() -> None:
    runner = FakeRunner(
        CommandOutcome(returncode=0, output=""),
        CommandOutcome(returncode=1, output=""),
        CommandOutcome(returncode=0, output="27.0.1"),
    )
    docker = DockerIntegration(runner=runner)

    assert docker.is_configured() is True
    assert docker.health_check().healthy is False
    assert docker.health_check().healthy is True


def test_docker_run_builds_container_command() -> None:
    runner = FakeRunner(CommandOutcome(returncode=0, output="0123456789abcdef\n"))
    docker = DockerIntegration(runner=runner)

    result = docker.run(
        {
            "imageName": "acme/app:1.0",
            "containerName": "web",
            "envVars": {"MODE": "smoke"},
            "portMappings": {8080: 80},
        }
    )

    assert result.success is True
    assert result.message == "Started container web"
    assert result.data == {"containerId": "0123456789abcdef", "imageName": "acme/app:1.0"}
    assert runner.calls[0][0] == (
        ["docker", "run", "-d", "--name", "web"]
        + ["-e", "MODE=smoke", "-p", "8080:80", "acme/app:1.0"]
    )


def test_docker_run_attached_without_name_and_failure() -> None:
    runner = FakeRunner(
        CommandOutcome(returncode=0, output="0123456789abcdef"),
        CommandOutcome(returncode=125, output="Unable to find image 'nope:latest'"),
    )
    docker = DockerIntegration(runner=runner)

    started = docker.run({"imageName": "app", "detached": False})
    failed = docker.run({"imageName": "nope"})

    assert started.message == "Started container 0123456789ab"
    assert runner.calls[0][0] == ["docker", "run", "app"]
    assert failed.success is False
    assert failed.message == "Run failed: Unable to find image 'nope:latest'"


def test_docker_compose_up_and_down() -> None:
    runner = FakeRunner(
        CommandOutcome(returncode=0, output="Started"),
        CommandOutcome(returncode=1, output="no such service"),
    )
    docker = DockerIntegration(runner=runner)

    up = docker.compose_up({"composePath": "deploy/compose.yml"})
    down = docker.compose_down({})

    assert up.success is True
    assert up.message == "Started compose services"
    assert runner.calls[0][0] == ["docker", "compose", "-f", "deploy/compose.yml", "up", "-d"]
    assert down.success is False
    assert down.message == "Compose down failed (exit code 1)"
    assert runner.calls[1][0] == ["docker", "compose", "down"]


def test_docker_compose_up_attached_through_dispatch() -> None:
    runner = FakeRunner()
    docker = DockerIntegration(runner=runner)

    result = ActionDispatcher(CapabilityRegistry([docker])).dispatch(
        "docker", "composeUp", {"detached": "false"}
    )

    assert result.success is True
    assert runner.calls[-1][0] == ["docker", "compose", "up"]


def test_docker_rejects_unresolved_image_placeholder() -> None:
    runner = FakeRunner()
    docker = DockerIntegration(registry="registry.example.com", runner=runner)
    dispatcher = ActionDispatcher(CapabilityRegistry([docker]))

    built = dispatcher.dispatch("docker", "build", {"imageName": "${registry}/app", "tag": "1"})
    started = dispatcher.dispatch("docker", "run", {"imageName": "${imageName}"})

    assert built.success is False
    assert built.message == "Unresolved placeholder in imageName: ${registry}/app"
    assert started.success is False
    assert started.message == "Unresolved placeholder in imageName: ${imageName}"
    assert [call[0][:2] for call in runner.calls] == [["docker", "version"]]


def test_run_command_reports_missing_executable() -> None:
    outcome = run_command(["definitely-not-a-real-binary-xyz"], None, 5)

    assert outcome.returncode == 127
    assert outcome.ok is False


# --- jira -----------------------------------------------------------------


def test_jira_get_issue() -> None:
    session = MagicMock()
    session.request.return_value = _response({"key": "PROJ-1", "fields": {"summary": "Bug"}})
    jira = JiraIntegration(
        url="https://acme.atlassian.net/", email="a@b.c", token="t", session=session
    )

    result = jira.get_issue({"issueKey": "PROJ-1"})

    assert result.success is True
    assert result.data["key"] == "PROJ-1"
    method, url = session.request.call_args.args
    assert (method, url) == ("GET", "https://acme.atlassian.net/rest/api/3/issue/PROJ-1")
    assert session.auth == ("a@b.c", "t")


def test_jira_transition_issue_by_name() -> None:
    session = MagicMock()
    session.request.side_effect = [
        _response(
            {"transitions": [{"id": "21", "name": "To Do"}, {"id": "31", "name": "In Progress"}]}
        ),
        _response({}),
    ]
    jira = JiraIntegration(url="https://jira", email="e", token="t", session=session)

    result = jira.transition_issue({"issueKey": "PROJ-1", "transitionName": "in progress"})

    assert result.success is True
    assert session.request.call_args.kwargs["json"] == {"transition": {"id": "31"}}


def test_jira_unknown_transition_fails() -> None:
    session = MagicMock()
    session.request.return_value = _response({"transitions": [{"id": "21", "name": "To Do"}]})
    jira = JiraIntegration(url="https://jira", email="e", token="t", session=session)

    result = jira.transition_issue({"issueKey": "PROJ-1", "transitionName": "Done"})

    assert result.success is False
    assert "Transition 'Done' not available" in result.message


def test_jira_request_errors_become_failures() -> None:
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("connection refused")
    jira = JiraIntegration(url="https://jira", email="e", token="t", session=session)

    result = jira.add_comment({"issueKey": "PROJ-1", "comment": "hi"})

    assert result.success is False
    assert result.message == "connection refused"


def test_jira_without_url_is_not_configured() -> None:
    jira = JiraIntegration(url="", email="", token="", session=MagicMock())

    assert jira.is_configured() is False
    assert jira.health_check().message == "Not configured"


# --- github ---------------------------------------------------------------


def _pull(number: int = 5) -> MagicMock:
    pr = MagicMock()
    pr.number = number
    pr.title = "Fix: PROJ-1"
    pr.state = "open"
    pr.draft = False
    pr.merged = False
    pr.head.ref = "fix/PROJ-1"
    pr.base.ref = "main"
    pr.html_url = f"https://github.com/acme/app/pull/{number}"
    return pr


def test_github_create_pull_request() -> None:
    api = MagicMock()
    repo = api.get_repo.return_value
    repo.create_pull.return_value = _pull()
    gh = GitHubIntegration(token="", github_api=api)

    result = gh.create_pull_request(
        {"repository": "acme/app", "title": "Fix: PROJ-1", "head": "fix/PROJ-1", "base": "main"}
    )

    assert result.success is True
    assert result.data["number"] == 5
    assert result.data["links"]["html"]["href"] == "https://github.com/acme/app/pull/5"
    api.get_repo.assert_called_once_with("acme/app")
    repo.create_pull.assert_called_once_with(
        title="Fix: PROJ-1", body="", head="fix/PROJ-1", base="main", draft=False
    )


def test_github_api_error_becomes_failure() -> None:
    api = MagicMock()
    api.get_repo.return_value.get_pull.side_effect = GithubException(
        404, {"message": "Not Found"}, None
    )
    gh = GitHubIntegration(token="t", github_api=api)

    result = gh.get_pull_request({"repository": "acme/app", "pullNumber": 9})

    assert result.success is False
    assert result.message == "GitHub API error 404: Not Found"


def test_github_missing_repository_fails_through_dispatch() -> None:
    gh = GitHubIntegration(token="t", github_api=MagicMock())
    dispatcher = ActionDispatcher(CapabilityRegistry([gh]))

    result = dispatcher.dispatch("github", "listBranches", {})

    assert result.success is False
    assert "repository parameter is required" in result.message


def test_github_issue_number_is_coerced_through_dispatch() -> None:
    api = MagicMock()
    issue = api.get_repo.return_value.get_issue.return_value
    issue.number = 12
    issue.assignees = []
    gh = GitHubIntegration(token="t", github_api=api)

    result = ActionDispatcher(CapabilityRegistry([gh])).dispatch(
        "github", "getIssue", {"repository": "acme/app", "issueNumber": "12"}
    )

    assert result.success is True
    api.get_repo.return_value.get_issue.assert_called_once_with(12)


def test_github_without_token_is_not_configured() -> None:
    gh = GitHubIntegration(token="  ")

    assert gh.is_configured() is False
    assert gh.health_check().healthy is False


# --- registry -------------------------------------------------------------


def test_build_registry_registers_all_bundled_integrations() -> None:
    settings = EngineSettings(_env_file=None)

    registry = build_registry(settings)

    assert registry.ids() == ["docker", "github", "jira", "qa"]
    assert "jira" in registry
    assert len(registry) == 4


def test_registry_health_survives_raising_integration() -> None:
    broken = QAIntegration(runner=FakeRunner())
    broken.health_check = MagicMock(side_effect=RuntimeError("crashed"))  # type: ignore

    report = CapabilityRegistry([broken]).health()

    assert report["qa"].healthy is False
    assert report["qa"].message == "crashed"
    assert report["qa"].latency_ms == -1


def test_registry_close_releases_client_connections() -> None:
    api = MagicMock()
    session = MagicMock()
    gh = GitHubIntegration(token="t", github_api=api)
    jira = JiraIntegration(
        url="https://acme.atlassian.net", email="bot@acme.dev", token="t", session=session
    )
    qa = QAIntegration(runner=FakeRunner())
    qa.close = MagicMock(side_effect=RuntimeError("already closed"))  # type: ignore

    CapabilityRegistry([gh, jira, qa]).close()

    api.close.assert_called_once_with()
    session.close.assert_called_once_with()
    qa.close.assert_called_once_with()
