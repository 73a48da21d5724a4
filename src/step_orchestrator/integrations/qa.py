"""QA integration: runs the project's test and coverage commands."""

from __future__ import annotations

import logging
import shlex
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)
from step_orchestrator.integrations.shell import CommandRunner, has_placeholder, run_command

logger = logging.getLogger(__name__)

QA_ID = "qa"


class QAIntegration(Integration):
    def __init__(
        self,
        *,
        enabled: bool = True,
        test_command: str = "pytest -q",
        coverage_command: str = "pytest --cov -q",
        timeout_seconds: float = 600.0,
        runner: CommandRunner = run_command,
    ) -> None:
        self._enabled = enabled
        self._test_command = test_command
        self._coverage_command = coverage_command
        self._timeout = timeout_seconds
        self._run = runner

    @property
    def id(self) -> str:
        return QA_ID

    @property
    def name(self) -> str:
        return "QA & Testing"

    def is_configured(self) -> bool:
        return self._enabled

    def health_check(self) -> IntegrationHealth:
        if not self._enabled:
            return IntegrationHealth.down(self.id, "QA integration is disabled")
        return IntegrationHealth.up(self.id, 0)

    def actions(self) -> Mapping[str, ActionSpec]:
        return {
            "runTests": ActionSpec(
                "runTests", self.run_tests, {"workingDir": str, "testCommand": str}
            ),
            "runTestFile": ActionSpec(
                "runTestFile", self.run_test_file, {"workingDir": str, "testFile": str}
            ),
            "analyzeCoverage": ActionSpec(
                "analyzeCoverage", self.analyze_coverage, {"workingDir": str}
            ),
        }

    def _execute(self, action: str, command: str, working_dir: object) -> IntegrationResult:
        cwd = Path(str(working_dir)) if working_dir else None
        if cwd is not None and not cwd.is_dir():
            return IntegrationResult.failure(self.id, action, f"Working directory not found: {cwd}")

        start = time.monotonic()
        logger.info("Running tests", extra={"command": command, "cwd": str(cwd or ".")})
        outcome = self._run(shlex.split(command), cwd, self._timeout)
        elapsed = int((time.monotonic() - start) * 1000)

        if outcome.ok:
            message = "Tests passed"
        elif outcome.timed_out:
            message = f"Tests timed out after {self._timeout:g}s"
        else:
            message = f"Tests failed (exit code {outcome.returncode})"
        return IntegrationResult(
            integration_id=self.id,
            action=action,
            success=outcome.ok,
            message=message,
            data={"command": command, "exitCode": outcome.returncode, "output": outcome.tail()},
            execution_time_ms=elapsed,
        )

    def run_tests(self, params: Mapping[str, Any]) -> IntegrationResult:
        command = str(params.get("testCommand") or "").strip()
        if has_placeholder(command):
            logger.warning(
                "Unresolved testCommand, using default", extra={"test_command": command}
            )
            command = ""
        return self._execute("runTests", command or self._test_command, params.get("workingDir"))

    def run_test_file(self, params: Mapping[str, Any]) -> IntegrationResult:
        test_file = str(params.get("testFile") or "").strip()
        if not test_file:
            raise ValueError("testFile is required")
        command = f"{self._test_command} {shlex.quote(test_file)}"
        return self._execute("runTestFile", command, params.get("workingDir"))

    def analyze_coverage(self, params: Mapping[str, Any]) -> IntegrationResult:
        return self._execute("analyzeCoverage", self._coverage_command, params.get("workingDir"))
