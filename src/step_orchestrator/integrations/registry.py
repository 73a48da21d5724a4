"""Capability registry: integration id -> integration."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from step_orchestrator.integrations.base import Integration, IntegrationHealth

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """Read-mostly map of registered integrations.

    Integrations are registered once at startup and then shared by every
    concurrent workflow run. Registration is guarded by a lock so late
    registrations do not race with lookups.
    """

    def __init__(self, integrations: Iterable[Integration] = ()) -> None:
        self._lock = threading.Lock()
        self._integrations: dict[str, Integration] = {}
        for integration in integrations:
            self.register(integration)

    def register(self, integration: Integration) -> None:
        with self._lock:
            self._integrations[integration.id] = integration
        logger.info(
            "Registered integration",
            extra={"integration_id": integration.id, "configured": integration.is_configured()},
        )

    def lookup(self, integration_id: str) -> Integration | None:
        with self._lock:
            return self._integrations.get(integration_id)

    def ids(self) -> list[str]:
        with self._lock:
            return sorted(self._integrations)

    def health(self) -> dict[str, IntegrationHealth]:
        """Query every integration's health live."""

        with self._lock:
            integrations = list(self._integrations.values())
        report: dict[str, IntegrationHealth] = {}
        for integration in integrations:
            try:
                report[integration.id] = integration.health_check()
            except Exception as e:
                logger.exception(
                    "Health check raised", extra={"integration_id": integration.id}
                )
                report[integration.id] = IntegrationHealth.down(integration.id, str(e))
        return report

    def __contains__(self, integration_id: object) -> bool:
        with self._lock:
            return integration_id in self._integrations

    def __len__(self) -> int:
        with self._lock:
            return len(self._integrations)

    def close(self) -> None:
        """Close every registered integration, logging (not raising) failures."""

        with self._lock:
            integrations = list(self._integrations.values())
        for integration in integrations:
            try:
                integration.close()
            except Exception:
                logger.exception(
                    "Closing integration raised", extra={"integration_id": integration.id}
                )
