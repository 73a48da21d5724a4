"""Step Orchestrator.

Runs multi-step SDLC workflows across pluggable integrations (Jira, GitHub,
Docker, test runners) with retries, conditional steps and context passing.
"""

__version__ = "0.1.0"

from step_orchestrator.config import EngineSettings
from step_orchestrator.workflow import Workflow, WorkflowExecutor, WorkflowStep

__all__ = ["__version__", "EngineSettings", "Workflow", "WorkflowExecutor", "WorkflowStep"]
