"""Step-orchestration engine.

Executes ordered workflows whose steps call named actions on registered
integrations, with:
- `${key}` parameter templating from a per-run context store
- single-variable step conditions
- bounded retries with linear backoff and cooperative cancellation
- halt-or-continue failure semantics per step
"""

from step_orchestrator.workflow.context import ContextStore
from step_orchestrator.workflow.executor import WorkflowExecutor
from step_orchestrator.workflow.models import (
    StepResult,
    Workflow,
    WorkflowDefinitionError,
    WorkflowResult,
    WorkflowStep,
    validate_workflow,
)
from step_orchestrator.workflow.runner import CancellationToken, RetryPolicy

__all__ = [
    "CancellationToken",
    "ContextStore",
    "RetryPolicy",
    "StepResult",
    "Workflow",
    "WorkflowDefinitionError",
    "WorkflowExecutor",
    "WorkflowResult",
    "WorkflowStep",
    "validate_workflow",
]
