"""Workflow executor.

Runs a workflow's steps strictly in order on a single thread, threading one
:class:`ContextStore` through the run. Asynchronous runs are submitted to a
fixed-size worker pool; each run still executes entirely on one worker.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from step_orchestrator.integrations.base import IntegrationHealth, IntegrationResult
from step_orchestrator.integrations.registry import CapabilityRegistry
from step_orchestrator.workflow.conditions import SKIPPED_MESSAGE, evaluate_condition
from step_orchestrator.workflow.context import (
    LAST_STEP_SUCCESS,
    ContextStore,
    step_output_key,
    step_result_key,
)
from step_orchestrator.workflow.dispatch import ActionDispatcher
from step_orchestrator.workflow.models import StepResult, Workflow, WorkflowResult, WorkflowStep
from step_orchestrator.workflow.runner import CancellationToken, RetryPolicy, StepRunner
from step_orchestrator.workflow.templating import resolve_parameters

logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 5


class WorkflowExecutor:
    """Execute workflows against a capability registry.

    Args:
        registry: Integrations available to steps. Shared read-mostly by all runs.
        pool_size: Worker threads servicing :meth:`execute_async`.
        backoff_seconds: Base delay between retry attempts (multiplied by the
            attempt number).
        retry_policy: Optional hook to classify failures as non-retryable.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        backoff_seconds: float = 1.0,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        self.registry = registry
        self._dispatcher = ActionDispatcher(registry)
        self._runner = StepRunner(
            self._dispatcher,
            backoff_seconds=backoff_seconds,
            retry_policy=retry_policy,
        )
        self._pool = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="workflow")

    def execute(
        self,
        workflow: Workflow,
        initial_context: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> WorkflowResult:
        """Run ``workflow`` on the calling thread and return its result.

        Never raises for step failures: callers inspect ``WorkflowResult.success``
        and the per-step results.
        """

        token = cancel or CancellationToken()
        start_time = datetime.now(tz=UTC)
        ctx = ContextStore(initial_context)
        step_results: list[StepResult] = []
        success = True
        cancelled = False

        logger.info(
            "Starting workflow",
            extra={"workflow_id": workflow.id, "workflow_name": workflow.name},
        )

        for step in workflow.steps:
            if token.cancelled:
                logger.warning(
                    "Workflow cancelled", extra={"workflow_id": workflow.id, "next_step": step.id}
                )
                cancelled = True
                success = False
                break

            logger.info("Executing step", extra={"workflow_id": workflow.id, "step_id": step.id})

            if not evaluate_condition(step.condition, ctx):
                logger.info(
                    "Skipping step due to condition",
                    extra={"workflow_id": workflow.id, "step_id": step.id},
                )
                result = StepResult(
                    step_id=step.id, step_name=step.name, success=True, message=SKIPPED_MESSAGE
                )
                step_results.append(result)
                self._record(ctx, step, result)
                continue

            parameters = resolve_parameters(step.parameters, ctx.snapshot())
            result = self._runner.run(step, parameters, token)
            step_results.append(result)
            self._record(ctx, step, result)

            # A cancel during the step (usually inside a backoff wait) ends the run here.
            if token.cancelled:
                logger.warning(
                    "Workflow cancelled", extra={"workflow_id": workflow.id, "step_id": step.id}
                )
                cancelled = True
                success = False
                break

            if not result.success and not step.continue_on_failure:
                logger.error(
                    "Workflow failed at step",
                    extra={
                        "workflow_id": workflow.id,
                        "step_id": step.id,
                        "reason": result.message,
                    },
                )
                success = False
                break

            if not result.success:
                logger.warning(
                    "Step failed, continuing",
                    extra={"workflow_id": workflow.id, "step_id": step.id},
                )

        workflow_result = WorkflowResult(
            workflow_id=workflow.id,
            success=success,
            step_results=tuple(step_results),
            start_time=start_time,
            end_time=datetime.now(tz=UTC),
            final_context=ctx.snapshot(),
            cancelled=cancelled,
        )
        logger.info(
            workflow_result.summary(),
            extra={"workflow_id": workflow.id, "success": workflow_result.success},
        )
        return workflow_result

    def execute_async(
        self,
        workflow: Workflow,
        initial_context: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
    ) -> Future[WorkflowResult]:
        """Submit ``workflow`` to the worker pool."""

        # Copy now so later caller mutations do not leak into the queued run.
        seed = dict(initial_context or {})
        return self._pool.submit(self.execute, workflow, seed, cancel)

    def execute_action(
        self, integration_id: str, action: str, parameters: Mapping[str, Any]
    ) -> IntegrationResult:
        """Invoke one integration action directly, outside any workflow.

        Single attempt, no templating and no context.
        """

        logger.info(
            "Executing action", extra={"integration_id": integration_id, "action": action}
        )
        return self._dispatcher.dispatch(integration_id, action, parameters)

    def get_integration_health(self) -> dict[str, IntegrationHealth]:
        return self.registry.health()

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> WorkflowExecutor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)

    @staticmethod
    def _record(ctx: ContextStore, step: WorkflowStep, result: StepResult) -> None:
        ctx.put(step_result_key(step.id), result)
        ctx.put(step_output_key(step.id), result.data)
        ctx.put(LAST_STEP_SUCCESS, result.success)
