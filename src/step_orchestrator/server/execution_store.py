"""In-memory tracking of asynchronous workflow runs.

Runs are not durable: a process restart forgets every execution. Only the most
recent ``max_finished`` finished runs are kept; running ones are never dropped.
"""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import UTC, datetime

from step_orchestrator.server.models import ExecutionState
from step_orchestrator.workflow.models import WorkflowResult
from step_orchestrator.workflow.runner import CancellationToken


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass
class Execution:
    execution_id: str
    workflow_id: str
    future: Future[WorkflowResult]
    token: CancellationToken
    created_at: str = field(default_factory=_utc_iso_now)

    def state(self) -> ExecutionState:
        base = {
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "created_at": self.created_at,
        }
        if not self.future.done():
            return ExecutionState(status="RUNNING", **base)

        error = self.future.exception()
        if error is not None:
            return ExecutionState(status="FAILED", error=str(error), **base)

        result = self.future.result()
        return ExecutionState(
            status="CANCELLED" if result.cancelled else "COMPLETED",
            success=result.success,
            summary=result.summary(),
            result=result.to_json(),
            **base,
        )


DEFAULT_MAX_FINISHED = 200


@dataclass
class ExecutionStore:
    max_finished: int = DEFAULT_MAX_FINISHED
    _executions: dict[str, Execution] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def add(
        self, *, workflow_id: str, future: Future[WorkflowResult], token: CancellationToken
    ) -> Execution:
        execution = Execution(
            execution_id=uuid.uuid4().hex, workflow_id=workflow_id, future=future, token=token
        )
        with self._lock:
            self._executions[execution.execution_id] = execution
            self._prune()
        return execution

    def _prune(self) -> None:
        # Insertion order is submission order, so the first finished runs are the oldest.
        finished = [key for key, e in self._executions.items() if e.future.done()]
        for key in finished[: max(len(finished) - self.max_finished, 0)]:
            del self._executions[key]

    def get(self, execution_id: str) -> Execution | None:
        with self._lock:
            return self._executions.get(execution_id)

    def list(self) -> list[Execution]:
        with self._lock:
            return list(self._executions.values())
