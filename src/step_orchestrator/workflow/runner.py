"""Single-step execution with bounded retries and linear backoff."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from step_orchestrator.workflow.dispatch import ActionDispatcher
from step_orchestrator.workflow.models import StepResult, WorkflowStep

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation signal shared by a run and its backoff waits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""

        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


class RetryPolicy(Protocol):
    def is_retryable(self, result: StepResult) -> bool: ...


@dataclass(frozen=True, slots=True)
class RetryAll(RetryPolicy):
    """Retry every failure kind identically (configuration errors included)."""

    def is_retryable(self, result: StepResult) -> bool:
        return True


class StepRunner:
    """Run one step's dispatch up to ``max_retries + 1`` times.

    After failed attempt ``n`` (when attempts remain) the runner waits
    ``backoff_seconds * n`` before trying again. A cancelled token aborts the
    loop and the last known result is returned.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        *,
        backoff_seconds: float = 1.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._backoff_seconds = backoff_seconds
        self._retry_policy = retry_policy or RetryAll()

    def run(
        self,
        step: WorkflowStep,
        parameters: Mapping[str, Any],
        cancel: CancellationToken | None = None,
    ) -> StepResult:
        token = cancel or CancellationToken()
        max_attempts = max(step.max_retries, 0) + 1

        attempt = 1
        result = self._attempt(step, parameters)
        while not result.success and attempt < max_attempts:
            if not self._retry_policy.is_retryable(result):
                break

            logger.warning(
                "Step failed, retrying",
                extra={
                    "step_id": step.id,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "reason": result.message,
                },
            )
            if token.wait(self._backoff_seconds * attempt):
                logger.info("Retry loop cancelled", extra={"step_id": step.id, "attempt": attempt})
                break

            attempt += 1
            result = self._attempt(step, parameters)

        return result

    def _attempt(self, step: WorkflowStep, parameters: Mapping[str, Any]) -> StepResult:
        outcome = self._dispatcher.dispatch(step.integration_id, step.action, parameters)
        return StepResult(
            step_id=step.id,
            step_name=step.name,
            success=outcome.success,
            message=outcome.message,
            data=dict(outcome.data),
        )
