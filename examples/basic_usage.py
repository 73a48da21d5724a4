#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the engine components directly:

* load settings from `.env`
* build the integration registry
* run an ad-hoc workflow (tests, then a pull request if they pass)

Repository and branch are passed as arguments (not read from `.env`).
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from step_orchestrator.config import EngineSettings
from step_orchestrator.integrations.factory import build_registry
from step_orchestrator.logging import configure_logging
from step_orchestrator.workflow import Workflow, WorkflowExecutor, WorkflowStep


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Test a branch and open a PR if green.")
    parser.add_argument("--repo", required=True, help='Target repository in the form "owner/repo"')
    parser.add_argument("--branch", required=True, help="Head branch for the pull request")
    parser.add_argument("--title", required=True, help="Pull request title")
    parser.add_argument("--working-dir", default=".", help="Checkout to run the tests in")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level)

    workflow = Workflow(
        id="test-and-open-pr",
        name="Test and open PR",
        steps=[
            WorkflowStep(
                id="tests",
                name="Run tests",
                integration_id="qa",
                action="runTests",
                parameters={"workingDir": "${workingDir}"},
                max_retries=1,
            ),
            WorkflowStep(
                id="pr",
                name="Open pull request",
                integration_id="github",
                action="createPullRequest",
                parameters={
                    "repository": "${repo}",
                    "title": "${title}",
                    "head": "${branch}",
                    "body": "Tests passed: ${tests_output}",
                },
                condition="${lastStepSuccess}",
            ),
        ],
    )

    with WorkflowExecutor(
        build_registry(settings), backoff_seconds=settings.retry_backoff_seconds
    ) as executor:
        result = executor.execute(
            workflow,
            {
                "repo": args.repo,
                "branch": args.branch,
                "title": args.title,
                "workingDir": str(Path(args.working_dir).resolve()),
            },
        )

    for step in result.step_results:
        print(f"{step.step_id}: {step.message}")
    print(result.summary())
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
