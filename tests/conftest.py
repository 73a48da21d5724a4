"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

import pytest

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)
from step_orchestrator.integrations.registry import CapabilityRegistry
from step_orchestrator.workflow.executor import WorkflowExecutor


class FakeIntegration(Integration):
    """In-memory integration whose actions are plain callables.

    Every invocation is recorded in ``calls`` as ``(action, params)``.
    """

    def __init__(
        self,
        integration_id: str = "fake",
        *,
        configured: bool = True,
        handlers: Mapping[str, Callable[[Mapping[str, Any]], Any]] | None = None,
        param_types: Mapping[str, Mapping[str, type]] | None = None,
    ) -> None:
        self._id = integration_id
        self.configured = configured
        self.handlers = dict(handlers or {})
        self.param_types = dict(param_types or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.configured_checks = 0
        self.closed = False

    @property
    def id(self) -> str:
        return self._id

    def is_configured(self) -> bool:
        self.configured_checks += 1
        return self.configured

    def close(self) -> None:
        self.closed = True

    def health_check(self) -> IntegrationHealth:
        if self.configured:
            return IntegrationHealth.up(self._id, 1)
        return IntegrationHealth.down(self._id, "Not configured")

    def actions(self) -> Mapping[str, ActionSpec]:
        return {
            name: ActionSpec(name, self._recording(name, handler), self.param_types.get(name, {}))
            for name, handler in self.handlers.items()
        }

    def _recording(
        self, name: str, handler: Callable[[Mapping[str, Any]], Any]
    ) -> Callable[[Mapping[str, Any]], Any]:
        def _call(params: Mapping[str, Any]) -> Any:
            self.calls.append((name, dict(params)))
            return handler(params)

        return _call


def ok(message: str = "done", **data: Any) -> Callable[[Mapping[str, Any]], IntegrationResult]:
    """Handler that always succeeds with ``data``."""

    return lambda _params: IntegrationResult.ok("fake", "action", message, data)


def fail(message: str = "boom") -> Callable[[Mapping[str, Any]], IntegrationResult]:
    """Handler that always returns a failed result."""

    return lambda _params: IntegrationResult.failure("fake", "action", message)


def flaky(failures: int) -> Callable[[Mapping[str, Any]], IntegrationResult]:
    """Handler failing ``failures`` times before succeeding."""

    remaining = [failures]

    def _handler(_params: Mapping[str, Any]) -> IntegrationResult:
        if remaining[0] > 0:
            remaining[0] -= 1
            return IntegrationResult.failure("fake", "action", "transient")
        return IntegrationResult.ok("fake", "action", "recovered")

    return _handler


@pytest.fixture
def fake_integration() -> FakeIntegration:
    return FakeIntegration(
        handlers={
            "succeed": ok(),
            "fail": fail(),
            "echo": lambda params: IntegrationResult.ok("fake", "echo", "echoed", dict(params)),
        }
    )


@pytest.fixture
def registry(fake_integration: FakeIntegration) -> CapabilityRegistry:
    return CapabilityRegistry([fake_integration])


@pytest.fixture
def executor(registry: CapabilityRegistry) -> Iterator[WorkflowExecutor]:
    """Executor with no retry backoff so retry tests run instantly."""
    engine = WorkflowExecutor(registry, pool_size=2, backoff_seconds=0)
    yield engine
    engine.shutdown(wait=True)
