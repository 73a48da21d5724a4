"""Resolve ``(integration_id, action)`` to a handler and invoke it."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from step_orchestrator.integrations.base import ActionSpec, IntegrationResult
from step_orchestrator.integrations.registry import CapabilityRegistry

logger = logging.getLogger(__name__)


def coerce_value(value: Any, target: type) -> Any:
    """Best-effort conversion among str/int/bool.

    Values that cannot be converted are returned unchanged; the handler then
    decides what to do with them.
    """

    if value is None:
        return None
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value
    if target is str:
        return str(value)
    if target is int:
        try:
            return int(str(value).strip())
        except ValueError:
            return value
    if target is bool:
        return str(value).strip().lower() == "true"
    return value


def coerce_parameters(spec: ActionSpec, parameters: Mapping[str, Any]) -> dict[str, Any]:
    coerced = dict(parameters)
    for name, target in spec.param_types.items():
        if name in coerced:
            coerced[name] = coerce_value(coerced[name], target)
    return coerced


class ActionDispatcher:
    """Invoke integration actions through their static action tables.

    Never raises: every failure mode (unknown integration, unconfigured
    integration, unknown action, handler exception) becomes a failed
    :class:`IntegrationResult`.
    """

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    def dispatch(
        self, integration_id: str, action: str, parameters: Mapping[str, Any]
    ) -> IntegrationResult:
        integration = self._registry.lookup(integration_id)
        if integration is None:
            return IntegrationResult.failure(
                integration_id, action, f"Integration not found: {integration_id}"
            )

        try:
            configured = integration.is_configured()
        except Exception as e:
            logger.exception(
                "Configuration check raised", extra={"integration_id": integration_id}
            )
            return IntegrationResult.failure(integration_id, action, str(e))
        if not configured:
            return IntegrationResult.failure(
                integration_id, action, f"Integration not configured: {integration_id}"
            )

        spec = integration.actions().get(action)
        if spec is None:
            return IntegrationResult.failure(integration_id, action, f"Action not found: {action}")

        start = time.monotonic()
        try:
            raw = spec.handler(coerce_parameters(spec, parameters))
        except Exception as e:
            logger.exception(
                "Action raised",
                extra={"integration_id": integration_id, "action": action},
            )
            return IntegrationResult.failure(integration_id, action, str(e) or type(e).__name__)

        if isinstance(raw, IntegrationResult):
            return raw

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return IntegrationResult.ok(
            integration_id,
            action,
            "Action completed",
            {"result": raw if raw is not None else "void"},
            elapsed_ms,
        )
