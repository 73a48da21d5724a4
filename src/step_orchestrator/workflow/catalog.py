"""Predefined SDLC workflows built from the bundled integrations.

Context variables each workflow expects are listed in its description and
resolved into step parameters at run time.
"""

from __future__ import annotations

from step_orchestrator.workflow.models import Workflow, WorkflowStep

LAST_STEP_OK = "${lastStepSuccess}"


def bug_fix_workflow() -> Workflow:
    """Jira ticket -> tests -> pull request -> Jira comment.

    Context: ``jiraTicket``, ``workingDir``, ``repo`` (owner/repo).
    """

    return Workflow(
        id="bug-fix",
        name="Bug Fix Pipeline",
        description="Bug fix from Jira ticket to pull request (jiraTicket, workingDir, repo)",
        steps=(
            WorkflowStep(
                id="fetch-ticket",
                name="Fetch Jira Ticket",
                integration_id="jira",
                action="getIssue",
                parameters={"issueKey": "${jiraTicket}"},
            ),
            WorkflowStep(
                id="transition-progress",
                name="Move to In Progress",
                integration_id="jira",
                action="transitionIssue",
                parameters={"issueKey": "${jiraTicket}", "transitionName": "In Progress"},
                continue_on_failure=True,
            ),
            WorkflowStep(
                id="run-tests",
                name="Run Tests",
                integration_id="qa",
                action="runTests",
                parameters={"workingDir": "${workingDir}"},
                max_retries=2,
            ),
            WorkflowStep(
                id="create-pr",
                name="Create Pull Request",
                integration_id="github",
                action="createPullRequest",
                parameters={
                    "repository": "${repo}",
                    "title": "Fix: ${jiraTicket}",
                    "head": "fix/${jiraTicket}",
                    "base": "main",
                    "body": "Fixes ${jiraTicket}",
                },
                condition=LAST_STEP_OK,
            ),
            WorkflowStep(
                id="link-jira",
                name="Link PR to Jira",
                integration_id="jira",
                action="addComment",
                parameters={
                    "issueKey": "${jiraTicket}",
                    "comment": "Pull request opened in ${repo} from fix/${jiraTicket}",
                },
                continue_on_failure=True,
            ),
        ),
    )


def release_workflow() -> Workflow:
    """Tests -> image build -> push -> smoke tests.

    Context: ``workingDir``, ``registry``, ``imageName``, ``version``,
    ``smokeTestCommand``.
    """

    return Workflow(
        id="release",
        name="Release Pipeline",
        description="Release pipeline with Docker (workingDir, registry, imageName, version)",
        steps=(
            WorkflowStep(
                id="run-all-tests",
                name="Run All Tests",
                integration_id="qa",
                action="runTests",
                parameters={"workingDir": "${workingDir}"},
            ),
            WorkflowStep(
                id="docker-build",
                name="Build Docker Image",
                integration_id="docker",
                action="build",
                parameters={
                    "contextPath": "${workingDir}",
                    "imageName": "${registry}/${imageName}",
                    "tag": "${version}",
                },
                condition=LAST_STEP_OK,
            ),
            WorkflowStep(
                id="docker-push",
                name="Push Image",
                integration_id="docker",
                action="push",
                parameters={"imageName": "${registry}/${imageName}", "tag": "${version}"},
                condition=LAST_STEP_OK,
            ),
            WorkflowStep(
                id="smoke-tests",
                name="Run Smoke Tests",
                integration_id="qa",
                action="runTests",
                parameters={"workingDir": "${workingDir}", "testCommand": "${smokeTestCommand}"},
                condition=LAST_STEP_OK,
                max_retries=2,
            ),
        ),
    )


def ci_workflow() -> Workflow:
    """Tests -> coverage -> image build. Context: ``workingDir``, ``imageName``, ``buildNumber``."""

    return Workflow(
        id="ci",
        name="Continuous Integration",
        description="Standard CI pipeline (workingDir, imageName, buildNumber)",
        steps=(
            WorkflowStep(
                id="run-tests",
                name="Run Tests",
                integration_id="qa",
                action="runTests",
                parameters={"workingDir": "${workingDir}"},
            ),
            WorkflowStep(
                id="coverage",
                name="Coverage Analysis",
                integration_id="qa",
                action="analyzeCoverage",
                parameters={"workingDir": "${workingDir}"},
                condition=LAST_STEP_OK,
            ),
            WorkflowStep(
                id="docker-build",
                name="Build Docker Image",
                integration_id="docker",
                action="build",
                parameters={
                    "contextPath": "${workingDir}",
                    "imageName": "${imageName}",
                    "tag": "ci-${buildNumber}",
                },
                condition=LAST_STEP_OK,
            ),
        ),
    )


def all_workflows() -> list[Workflow]:
    return [bug_fix_workflow(), release_workflow(), ci_workflow()]


def get_workflow(workflow_id: str) -> Workflow | None:
    return next((w for w in all_workflows() if w.id == workflow_id), None)
