"""Capability contract between the workflow engine and external integrations.

An integration is an external collaborator (issue tracker, source-control host,
container tooling, test runner) that exposes a fixed, statically declared table
of named actions. The engine never introspects integration objects: it only
looks up actions in the table returned by :meth:`Integration.actions`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

ActionHandler = Callable[[Mapping[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class IntegrationResult:
    """Normalized outcome of a single integration action."""

    integration_id: str
    action: str
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    execution_time_ms: int = 0

    @staticmethod
    def ok(
        integration_id: str,
        action: str,
        message: str,
        data: dict[str, Any] | None = None,
        execution_time_ms: int = 0,
    ) -> IntegrationResult:
        return IntegrationResult(
            integration_id=integration_id,
            action=action,
            success=True,
            message=message,
            data=dict(data or {}),
            execution_time_ms=execution_time_ms,
        )

    @staticmethod
    def failure(integration_id: str, action: str, error: str) -> IntegrationResult:
        return IntegrationResult(
            integration_id=integration_id,
            action=action,
            success=False,
            message=error,
            data={},
            execution_time_ms=-1,
        )

    def to_json(self) -> dict[str, object]:
        return {
            "integration_id": self.integration_id,
            "action": self.action,
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "execution_time_ms": self.execution_time_ms,
        }


@dataclass(frozen=True, slots=True)
class IntegrationHealth:
    """Live health record for one integration. Never cached."""

    integration_id: str
    healthy: bool
    message: str
    latency_ms: int

    @staticmethod
    def up(integration_id: str, latency_ms: int) -> IntegrationHealth:
        return IntegrationHealth(
            integration_id=integration_id, healthy=True, message="Connected", latency_ms=latency_ms
        )

    @staticmethod
    def down(integration_id: str, reason: str) -> IntegrationHealth:
        return IntegrationHealth(
            integration_id=integration_id, healthy=False, message=reason, latency_ms=-1
        )

    def to_json(self) -> dict[str, object]:
        return {
            "integration_id": self.integration_id,
            "healthy": self.healthy,
            "message": self.message,
            "latency_ms": self.latency_ms,
        }


@dataclass(frozen=True, slots=True)
class ActionSpec:
    """One entry of an integration's action table.

    ``param_types`` declares the argument shape the handler expects. The
    dispatcher coerces resolved parameter values to these types on a
    best-effort basis before calling ``handler``.
    """

    name: str
    handler: ActionHandler
    param_types: Mapping[str, type] = field(default_factory=dict)
    description: str = ""


class Integration(ABC):
    """Base class for all pluggable integrations."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Registry key, e.g. ``"jira"``."""

    @property
    def name(self) -> str:
        return self.id

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials/tooling required by the actions are present."""

    @abstractmethod
    def health_check(self) -> IntegrationHealth:
        """Probe the external service."""

    @abstractmethod
    def actions(self) -> Mapping[str, ActionSpec]:
        """Return the static action table keyed by action name."""

    def supported_actions(self) -> list[str]:
        return sorted(self.actions())

    def close(self) -> None:
        """Release client connections. No-op unless the integration holds any."""
