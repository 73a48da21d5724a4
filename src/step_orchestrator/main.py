"""CLI entrypoint for the step orchestrator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import closing
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from step_orchestrator import __version__
from step_orchestrator.config import EngineSettings
from step_orchestrator.integrations.factory import build_registry
from step_orchestrator.logging import configure_logging
from step_orchestrator.workflow.catalog import all_workflows, get_workflow
from step_orchestrator.workflow.executor import WorkflowExecutor
from step_orchestrator.workflow.models import WorkflowResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_WORKFLOW_FAILED = 4


def _parse_vars(values: list[str] | None) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --var '{item}', expected key=value")
        parsed[key.strip()] = value
    return parsed


def _load_context(args: argparse.Namespace) -> dict[str, Any]:
    context: dict[str, Any] = {}
    if args.context_file:
        raw = json.loads(Path(args.context_file).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("--context-file must contain a JSON object")
        context.update(raw)
    context.update(_parse_vars(args.var))
    context.setdefault("workingDir", str(Path.cwd()))
    return context


def _print_result(result: WorkflowResult) -> None:
    for step in result.step_results:
        mark = "ok" if step.success else "FAILED"
        print(f"  [{mark}] {step.step_id}: {step.message}")
    print(result.summary())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orchestrator",
        description="Run SDLC workflows across Jira, GitHub, Docker and test runners",
    )
    parser.add_argument("--version", action="version", version=f"step-orchestrator {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List predefined workflows")

    show = subparsers.add_parser("show", help="Print a workflow definition as JSON")
    show.add_argument("workflow_id", help="Workflow id, e.g. 'ci'")

    run = subparsers.add_parser("run", help="Execute a predefined workflow")
    run.add_argument("workflow_id", help="Workflow id, e.g. 'ci'")
    run.add_argument(
        "--var",
        action="append",
        metavar="KEY=VALUE",
        help="Initial context variable (repeatable), e.g. --var jiraTicket=PROJ-42",
    )
    run.add_argument(
        "--context-file",
        default=None,
        help="JSON file with initial context variables (--var entries override it)",
    )
    run.add_argument(
        "--async",
        dest="run_async",
        action="store_true",
        help="Submit to the worker pool and wait on the returned future",
    )
    run.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the full result as JSON instead of a summary",
    )

    subparsers.add_parser("health", help="Check the health of every integration")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings.log_level)

    if args.command == "list":
        for workflow in all_workflows():
            print(f"{workflow.id}\t{workflow.name} ({len(workflow.steps)} steps)")
            print(f"\t{workflow.description}")
        return EXIT_OK

    if args.command == "show":
        workflow = get_workflow(args.workflow_id)
        if workflow is None:
            print(f"Unknown workflow: {args.workflow_id}", file=sys.stderr)
            return EXIT_USAGE
        print(json.dumps(workflow.to_json(), indent=2))
        return EXIT_OK

    try:
        with (
            closing(build_registry(settings)) as registry,
            WorkflowExecutor(
                registry,
                pool_size=settings.worker_pool_size,
                backoff_seconds=settings.retry_backoff_seconds,
            ) as executor,
        ):
            if args.command == "health":
                report = executor.get_integration_health()
                for integration_id, health in sorted(report.items()):
                    status = "healthy" if health.healthy else "unhealthy"
                    print(f"{integration_id}: {status} ({health.message})")
                return EXIT_OK if all(h.healthy for h in report.values()) else EXIT_ERROR

            if args.command == "run":
                workflow = get_workflow(args.workflow_id)
                if workflow is None:
                    print(f"Unknown workflow: {args.workflow_id}", file=sys.stderr)
                    return EXIT_USAGE
                try:
                    context = _load_context(args)
                except (ValueError, OSError) as e:
                    print(str(e), file=sys.stderr)
                    return EXIT_USAGE

                if args.run_async:
                    result = executor.execute_async(workflow, context).result()
                else:
                    result = executor.execute(workflow, context)

                if args.as_json:
                    print(json.dumps(result.to_json(), indent=2))
                else:
                    _print_result(result)
                return EXIT_OK if result.success else EXIT_WORKFLOW_FAILED

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_USAGE

    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
