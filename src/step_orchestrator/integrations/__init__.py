"""Pluggable integrations and the capability registry."""

from step_orchestrator.integrations.base import (
    ActionSpec,
    Integration,
    IntegrationHealth,
    IntegrationResult,
)
from step_orchestrator.integrations.registry import CapabilityRegistry

__all__ = [
    "ActionSpec",
    "CapabilityRegistry",
    "Integration",
    "IntegrationHealth",
    "IntegrationResult",
]
