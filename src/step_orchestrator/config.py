"""Configuration for the workflow engine and its integrations.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

No setting is mandatory. Integrations whose credentials are missing still get
registered; they just report themselves as not configured, and steps that use
them fail at dispatch time.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the engine, its worker pool and the bundled integrations.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    worker_pool_size: int = Field(
        default=5,
        ge=1,
        validation_alias="ORCHESTRATOR_WORKER_POOL_SIZE",
        description="Worker threads servicing asynchronous workflow runs",
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        validation_alias="ORCHESTRATOR_RETRY_BACKOFF_SECONDS",
        description="Base retry delay; attempt n waits n times this value",
    )
    max_finished_executions: int = Field(
        default=200,
        ge=1,
        validation_alias="ORCHESTRATOR_MAX_FINISHED_EXECUTIONS",
        description="Finished asynchronous runs the REST server keeps for polling",
    )

    # Jira
    jira_url: str = Field(default="", validation_alias="JIRA_URL")
    jira_email: str = Field(default="", validation_alias="JIRA_EMAIL")
    jira_token: str = Field(default="", validation_alias="JIRA_TOKEN")

    # GitHub
    github_token: str = Field(
        default="",
        validation_alias="ORCHESTRATOR_GITHUB_TOKEN",
        description="GitHub token used for API authentication",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    # Docker
    docker_registry: str = Field(
        default="",
        validation_alias="DOCKER_REGISTRY",
        description="Registry prefix applied to image names without one",
    )
    docker_timeout_seconds: int = Field(
        default=300, ge=1, validation_alias="DOCKER_TIMEOUT_SECONDS"
    )

    # QA / test runner
    qa_enabled: bool = Field(default=True, validation_alias="QA_ENABLED")
    qa_test_command: str = Field(default="pytest -q", validation_alias="QA_TEST_COMMAND")
    qa_coverage_command: str = Field(
        default="pytest --cov -q", validation_alias="QA_COVERAGE_COMMAND"
    )
    qa_timeout_seconds: int = Field(default=600, ge=1, validation_alias="QA_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )
