"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class WorkflowSummary(BaseModel):
    id: str
    name: str
    description: str
    step_count: int


class StepDefinition(BaseModel):
    id: str
    name: str = ""
    integration_id: str
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    continue_on_failure: bool = False
    max_retries: int = Field(default=0, ge=0)
    condition: str | None = None


class WorkflowDefinition(BaseModel):
    id: str
    name: str
    description: str
    steps: list[StepDefinition]
    default_config: dict[str, Any] = Field(default_factory=dict)


class CustomWorkflowRequest(BaseModel):
    name: str
    description: str = ""
    steps: list[StepDefinition]
    context: dict[str, Any] = Field(default_factory=dict)


ExecutionStatus = Literal["RUNNING", "COMPLETED", "FAILED", "CANCELLED"]


class ExecutionStarted(BaseModel):
    execution_id: str
    workflow_id: str
    status: ExecutionStatus = "RUNNING"


class ExecutionState(BaseModel):
    execution_id: str
    workflow_id: str
    status: ExecutionStatus
    created_at: str

    success: bool | None = None
    summary: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None


class HealthRecord(BaseModel):
    integration_id: str
    healthy: bool
    message: str
    latency_ms: int


class IntegrationInfo(BaseModel):
    id: str
    name: str
    configured: bool
    actions: list[str]
