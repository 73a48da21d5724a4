"""Workflow data model.

Workflows and steps are immutable once constructed. Results are produced by the
executor, one ``StepResult`` per executed or skipped step.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class WorkflowDefinitionError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class WorkflowStep:
    """One declared invocation of an integration action."""

    id: str
    name: str
    integration_id: str
    action: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    continue_on_failure: bool = False
    max_retries: int = 0
    condition: str | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "integration_id": self.integration_id,
            "action": self.action,
            "parameters": dict(self.parameters),
            "continue_on_failure": self.continue_on_failure,
            "max_retries": self.max_retries,
            "condition": self.condition,
        }

    @staticmethod
    def from_json(obj: Mapping[str, Any]) -> WorkflowStep:
        """Build a step from a JSON object.

        Accepts both snake_case and camelCase keys so definitions authored for
        either convention load unchanged.
        """

        def _pick(*keys: str) -> Any:
            for key in keys:
                if key in obj:
                    return obj[key]
            return None

        params = _pick("parameters")
        retries = _pick("max_retries", "maxRetries")
        condition = _pick("condition")
        return WorkflowStep(
            id=str(_pick("id") or ""),
            name=str(_pick("name") or _pick("id") or ""),
            integration_id=str(_pick("integration_id", "integrationId") or ""),
            action=str(_pick("action") or ""),
            parameters=dict(params) if isinstance(params, Mapping) else {},
            continue_on_failure=bool(_pick("continue_on_failure", "continueOnFailure")),
            max_retries=int(retries) if retries is not None else 0,
            condition=condition if isinstance(condition, str) else None,
        )


@dataclass(frozen=True, slots=True)
class Workflow:
    """An ordered, named pipeline of steps."""

    id: str
    name: str
    steps: tuple[WorkflowStep, ...]
    description: str = ""
    default_config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Accept any sequence of steps but always store an immutable tuple.
        object.__setattr__(self, "steps", tuple(self.steps))

    def step_ids(self) -> list[str]:
        return [step.id for step in self.steps]

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "steps": [step.to_json() for step in self.steps],
            "default_config": dict(self.default_config),
        }

    @staticmethod
    def from_json(obj: Mapping[str, Any]) -> Workflow:
        steps_raw = obj.get("steps")
        steps = (
            [WorkflowStep.from_json(s) for s in steps_raw if isinstance(s, Mapping)]
            if isinstance(steps_raw, list)
            else []
        )
        config = obj.get("default_config", obj.get("defaultConfig"))
        return Workflow(
            id=str(obj.get("id") or ""),
            name=str(obj.get("name") or ""),
            description=str(obj.get("description") or ""),
            steps=tuple(steps),
            default_config=dict(config) if isinstance(config, Mapping) else {},
        )


def validate_workflow(workflow: Workflow) -> None:
    """Reject structurally invalid definitions.

    Dangling integration/action references are not checked here; those surface
    at dispatch time as step failures.

    Raises:
        WorkflowDefinitionError: On empty or duplicate step ids, or negative
            ``max_retries``.
    """

    if not workflow.id.strip():
        raise WorkflowDefinitionError("Workflow id is required")

    seen: set[str] = set()
    for step in workflow.steps:
        if not step.id.strip():
            raise WorkflowDefinitionError(f"Workflow {workflow.id}: step id is required")
        if step.id in seen:
            raise WorkflowDefinitionError(
                f"Workflow {workflow.id}: duplicate step id '{step.id}'"
            )
        if step.max_retries < 0:
            raise WorkflowDefinitionError(
                f"Workflow {workflow.id}: step '{step.id}' has negative max_retries"
            )
        seen.add(step.id)


@dataclass(frozen=True, slots=True)
class StepResult:
    step_id: str
    step_name: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, object]:
        return {
            "step_id": self.step_id,
            "step_name": self.step_name,
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }


@dataclass(frozen=True, slots=True)
class WorkflowResult:
    workflow_id: str
    success: bool
    step_results: tuple[StepResult, ...]
    start_time: datetime
    end_time: datetime
    final_context: Mapping[str, Any]
    cancelled: bool = False

    @property
    def duration_ms(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def summary(self) -> str:
        passed = sum(1 for r in self.step_results if r.success)
        status = "SUCCESS" if self.success else "FAILED"
        return (
            f"Workflow {status}: {passed}/{len(self.step_results)} steps passed "
            f"in {self.duration_ms}ms"
        )

    def to_json(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "success": self.success,
            "cancelled": self.cancelled,
            "step_results": [r.to_json() for r in self.step_results],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_ms": self.duration_ms,
            "summary": self.summary(),
            "final_context": _jsonable(self.final_context),
        }


def _jsonable(value: Any) -> Any:
    """Best-effort conversion of context values for JSON rendering."""

    if isinstance(value, StepResult | WorkflowResult):
        return value.to_json()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_jsonable(v) for v in value]
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    return str(value)
