"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the workflow executor and the
predefined workflow catalog.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException

from step_orchestrator import __version__
from step_orchestrator.config import EngineSettings
from step_orchestrator.integrations.factory import build_registry
from step_orchestrator.server.execution_store import ExecutionStore
from step_orchestrator.server.models import (
    CustomWorkflowRequest,
    ExecutionStarted,
    ExecutionState,
    HealthRecord,
    IntegrationInfo,
    WorkflowDefinition,
    WorkflowSummary,
)
from step_orchestrator.workflow.catalog import all_workflows, get_workflow
from step_orchestrator.workflow.executor import WorkflowExecutor
from step_orchestrator.workflow.models import (
    Workflow,
    WorkflowDefinitionError,
    WorkflowStep,
    validate_workflow,
)
from step_orchestrator.workflow.runner import CancellationToken

logger = logging.getLogger(__name__)


def _definition(workflow: Workflow) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(workflow.to_json())


def _require_workflow(workflow_id: str) -> Workflow:
    workflow = get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow not found: {workflow_id}")
    return workflow


def create_app(
    executor: WorkflowExecutor | None = None, settings: EngineSettings | None = None
) -> FastAPI:
    """Build the REST app.

    Args:
        executor: Executor to run workflows with. When omitted, one is built
            from ``settings`` with the bundled integrations and shut down with
            the app.
        settings: Engine settings. Loaded from the environment when omitted.
    """

    settings = settings or EngineSettings()
    owns_executor = executor is None
    if executor is None:
        executor = WorkflowExecutor(
            build_registry(settings),
            pool_size=settings.worker_pool_size,
            backoff_seconds=settings.retry_backoff_seconds,
        )
    engine = executor

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_executor:
            engine.shutdown(wait=False)
            engine.registry.close()

    app = FastAPI(
        title="Step Orchestrator",
        version=__version__,
        description="REST API for running SDLC workflows across integrations.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.executor = engine

    executions = ExecutionStore(max_finished=settings.max_finished_executions)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/workflows", response_model=list[WorkflowSummary])
    def list_workflows() -> list[WorkflowSummary]:
        return [
            WorkflowSummary(
                id=w.id, name=w.name, description=w.description, step_count=len(w.steps)
            )
            for w in all_workflows()
        ]

    # Registered before the /{workflow_id}/execute route so "custom" is not
    # captured as a workflow id.
    @app.post("/api/workflows/custom/execute")
    def execute_custom(req: CustomWorkflowRequest) -> dict[str, Any]:
        workflow = Workflow(
            id=f"custom-{uuid.uuid4().hex[:8]}",
            name=req.name,
            description=req.description,
            steps=tuple(WorkflowStep.from_json(s.model_dump()) for s in req.steps),
        )
        try:
            validate_workflow(workflow)
        except WorkflowDefinitionError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return engine.execute(workflow, req.context).to_json()

    @app.get("/api/workflows/{workflow_id}", response_model=WorkflowDefinition)
    def get_workflow_definition(workflow_id: str) -> WorkflowDefinition:
        return _definition(_require_workflow(workflow_id))

    @app.post("/api/workflows/{workflow_id}/execute")
    def execute_workflow(
        workflow_id: str, context: dict[str, Any] | None = Body(default=None)
    ) -> dict[str, Any]:
        workflow = _require_workflow(workflow_id)
        return engine.execute(workflow, context or {}).to_json()

    @app.post("/api/workflows/{workflow_id}/execute-async", response_model=ExecutionStarted)
    def execute_workflow_async(
        workflow_id: str, context: dict[str, Any] | None = Body(default=None)
    ) -> ExecutionStarted:
        workflow = _require_workflow(workflow_id)
        token = CancellationToken()
        future = engine.execute_async(workflow, context or {}, token)
        execution = executions.add(workflow_id=workflow.id, future=future, token=token)
        logger.info(
            "Workflow submitted",
            extra={"workflow_id": workflow.id, "execution_id": execution.execution_id},
        )
        return ExecutionStarted(execution_id=execution.execution_id, workflow_id=workflow.id)

    @app.get("/api/executions", response_model=list[ExecutionState])
    def list_executions() -> list[ExecutionState]:
        return [execution.state() for execution in executions.list()]

    @app.get("/api/executions/{execution_id}", response_model=ExecutionState)
    def get_execution(execution_id: str) -> ExecutionState:
        execution = executions.get(execution_id)
        if execution is None:
            raise HTTPException(status_code=404, detail="Execution not found")
        return execution.state()

    @app.post("/api/executions/{execution_id}/cancel", response_model=ExecutionState)
    def cancel_execution(execution_id: str) -> ExecutionState:
        execution = executions.get(execution_id)
        if execution is None:
            raise HTTPException(status_code=404, detail="Execution not found")
        execution.token.cancel()
        logger.info("Cancellation requested", extra={"execution_id": execution_id})
        return execution.state()

    @app.get("/api/integrations", response_model=list[IntegrationInfo])
    def list_integrations() -> list[IntegrationInfo]:
        infos = []
        for integration_id in engine.registry.ids():
            integration = engine.registry.lookup(integration_id)
            if integration is None:
                continue
            infos.append(
                IntegrationInfo(
                    id=integration.id,
                    name=integration.name,
                    configured=integration.is_configured(),
                    actions=integration.supported_actions(),
                )
            )
        return infos

    @app.post("/api/integrations/{integration_id}/{action}")
    def execute_action(
        integration_id: str, action: str, parameters: dict[str, Any] | None = Body(default=None)
    ) -> dict[str, Any]:
        if integration_id not in engine.registry:
            raise HTTPException(
                status_code=404, detail=f"Integration not found: {integration_id}"
            )
        return engine.execute_action(integration_id, action, parameters or {}).to_json()

    @app.get("/api/integrations/health", response_model=dict[str, HealthRecord])
    def integration_health() -> dict[str, HealthRecord]:
        return {
            key: HealthRecord.model_validate(value.to_json())
            for key, value in engine.get_integration_health().items()
        }

    return app
