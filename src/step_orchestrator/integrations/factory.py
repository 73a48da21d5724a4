"""Factory wiring the bundled integrations into a registry."""

from __future__ import annotations

import logging

from step_orchestrator.config import EngineSettings
from step_orchestrator.integrations.docker import DockerIntegration
from step_orchestrator.integrations.github import GitHubIntegration
from step_orchestrator.integrations.jira import JiraIntegration
from step_orchestrator.integrations.qa import QAIntegration
from step_orchestrator.integrations.registry import CapabilityRegistry

logger = logging.getLogger(__name__)


def build_registry(settings: EngineSettings) -> CapabilityRegistry:
    """Create a registry holding every bundled integration.

    Integrations are registered whether or not they are configured; an
    unconfigured integration fails its steps at dispatch time.

    Args:
        settings: Engine settings carrying integration credentials.

    Returns:
        Registry ready to be injected into a :class:`WorkflowExecutor`.
    """

    registry = CapabilityRegistry()
    registry.register(
        JiraIntegration(url=settings.jira_url, email=settings.jira_email, token=settings.jira_token)
    )
    registry.register(
        GitHubIntegration(token=settings.github_token, base_url=settings.github_base_url)
    )
    registry.register(
        DockerIntegration(
            registry=settings.docker_registry, timeout_seconds=settings.docker_timeout_seconds
        )
    )
    registry.register(
        QAIntegration(
            enabled=settings.qa_enabled,
            test_command=settings.qa_test_command,
            coverage_command=settings.qa_coverage_command,
            timeout_seconds=settings.qa_timeout_seconds,
        )
    )
    logger.info("Integration registry built", extra={"integrations": registry.ids()})
    return registry
